# wildyak/core/engine/ports.py
from __future__ import annotations
from typing import Any, Protocol, Optional, Sequence
from wildyak.core.engine.domain import IncomingMessage, Topic, YakSession


class AsyncSessionStore(Protocol):
    async def get(self, session_id: str, topics: Sequence[Topic]) -> Optional[YakSession]:
        """
        Load a session, resolving its contexts' topics by name against ``topics``.
        None => no session has been saved for this id yet.
        """
        ...

    async def save(self, session: YakSession) -> None: ...


class MessageFormatter(Protocol):
    """One implementation per channel type."""

    def parse_incoming_message(self, raw: Any) -> IncomingMessage: ...

    def merge_incoming_messages(self, raws: Sequence[Any]) -> IncomingMessage: ...
