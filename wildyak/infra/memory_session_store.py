# wildyak/infra/memory_session_store.py
from __future__ import annotations

import copy
from dataclasses import replace
from typing import Dict, Optional, Sequence

from wildyak.core.engine.domain import Topic, YakSession
from wildyak.core.engine.errors import SessionSerializationError
from wildyak.core.engine.ports import AsyncSessionStore
from wildyak.infra.logging_config import get_logger

logger = get_logger(__name__)


def snapshot_session(session: YakSession) -> YakSession:
    """
    Copy a session so later in-place mutation of one copy never reaches the other.

    Context data is deep-copied, so it must support ``copy.deepcopy``
    (plain data, not clients or locks); topics and continuations are
    shared, they are immutable registry values.

    Raises:
        SessionSerializationError: If some context data cannot be copied
    """
    clone = YakSession(
        id=session.id,
        type=session.type,
        contexts=[],
        topics=session.topics,
        virgin=session.virgin,
    )
    for context in session.contexts:
        try:
            data = copy.deepcopy(context.data)
        except Exception as exc:
            raise SessionSerializationError(
                f"Data of topic '{context.topic_name}' cannot be copied: {exc}"
            ) from exc
        clone.push(replace(
            context,
            data=data,
            active_hooks=list(context.active_hooks),
            disabled_hooks=list(context.disabled_hooks),
        ))
    return clone


class InMemorySessionStore(AsyncSessionStore):
    """
    Process-local session store.

    Keeps continuations as function objects, so any callable may be used
    as a continuation. Sessions are lost on restart.

    Both get and save copy the session: the handler mutates its own copy,
    and a call that fails before save leaves the stored one untouched.
    """

    def __init__(self) -> None:
        self.sessions: Dict[str, YakSession] = {}

    async def get(self, session_id: str, topics: Sequence[Topic]) -> Optional[YakSession]:
        stored = self.sessions.get(session_id)
        if stored is None:
            return None
        session = snapshot_session(stored)
        session.topics = tuple(topics)
        return session

    async def save(self, session: YakSession) -> None:
        self.sessions[session.id] = snapshot_session(session)
        logger.debug(f"Saved session in memory: depth={len(session.contexts)}")

    async def delete(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)
