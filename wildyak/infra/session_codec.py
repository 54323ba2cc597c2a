# wildyak/infra/session_codec.py
"""
JSON-friendly encoding of sessions for durable stores.

Topics are stored by name and resolved against the registry on load.
Continuations are stored as ``{"topic": ..., "name": ...}`` references
to a callback declared in the parent topic's ``callbacks``; context data
must be JSON-serializable.

Sessions stored before a registry change still load: unregistered topics
keep their name and unregistered continuations are dropped, with a warning.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

from wildyak.core.engine.domain import Context, Continuation, Topic, YakSession, callback_name, find_topic
from wildyak.core.engine.errors import SessionSerializationError
from wildyak.infra.logging_config import get_logger

logger = get_logger(__name__)


def _encode_continuation(context: Context) -> Optional[dict]:
    cb = context.continuation
    if cb is None:
        return None
    parent = context.parent_topic
    if parent is None or cb not in parent.callbacks:
        raise SessionSerializationError(
            f"Continuation {callback_name(cb)!r} of topic '{context.topic_name}' is not declared in "
            f"the callbacks of its parent topic '{parent.name if parent else None}'"
        )
    name = callback_name(cb)
    if sum(1 for other in parent.callbacks if callback_name(other) == name) > 1:
        raise SessionSerializationError(
            f"Topic '{parent.name}' declares more than one callback named {name!r}; "
            f"give each continuation a distinct function name"
        )
    return {"topic": parent.name, "name": name}


def encode_context(context: Context) -> dict:
    return {
        "topic": context.topic_name,
        "parent_topic": context.parent_topic.name if context.parent_topic else None,
        "data": context.data,
        "active_hooks": list(context.active_hooks),
        "disabled_hooks": list(context.disabled_hooks),
        "continuation": _encode_continuation(context),
    }


def encode_session(session: YakSession) -> dict:
    return {
        "id": session.id,
        "type": session.type,
        "virgin": session.virgin,
        "contexts": [encode_context(c) for c in session.contexts],
    }


def _lookup_topic(name: Optional[str], topics: Sequence[Topic]) -> Optional[Topic]:
    if name is None:
        return None
    topic = find_topic(name, topics)
    if topic is None:
        logger.warning(f"Stored session refers to unregistered topic '{name}'")
    return topic


def _decode_continuation(ref: Optional[dict], topics: Sequence[Topic]) -> Optional[Continuation]:
    if not ref:
        return None
    owner = find_topic(ref["topic"], topics)
    continuation = owner.find_callback(ref["name"]) if owner is not None else None
    if continuation is None:
        logger.warning(f"Dropping continuation {ref['topic']}.{ref['name']}: no longer registered")
    return continuation


def decode_context(record: dict, topics: Sequence[Topic]) -> Context:
    """
    Rebuild a context against the current registry.

    A topic that is no longer registered keeps only its name, so the
    dispatcher skips its local hooks and the global ones still answer.
    """
    topic = _lookup_topic(record["topic"], topics)
    return Context(
        topic=topic,
        data=record.get("data"),
        parent_topic=_lookup_topic(record.get("parent_topic"), topics),
        active_hooks=list(record.get("active_hooks") or []),
        disabled_hooks=list(record.get("disabled_hooks") or []),
        continuation=_decode_continuation(record.get("continuation"), topics),
        unregistered_topic=record["topic"] if topic is None else None,
    )


def decode_session(record: dict[str, Any], topics: Sequence[Topic]) -> YakSession:
    session = YakSession(
        id=record["id"],
        type=record["type"],
        contexts=[],
        topics=tuple(topics),
        virgin=bool(record.get("virgin", False)),
    )
    for context_record in record.get("contexts", []):
        session.push(decode_context(context_record, topics))
    return session
