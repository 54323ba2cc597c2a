# wildyak/core/engine/domain.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence


# ============================================================================
# CALLABLE SIGNATURES
# ============================================================================

# (init_args, external_session) -> context data
InitFunc = Callable[[Any, Any], Awaitable[Any]]
# (state, message) -> parse result, None means "did not match"
ParseFunc = Callable[["State", Any], Awaitable[Any]]
# (state, parse_result) -> handler result
HandlerFunc = Callable[["State", Any], Awaitable[Any]]
# (state_of_parent, result_args) -> handler result
Continuation = Callable[["State", Any], Awaitable[Any]]
# (state, external_session) -> None
AfterInitFunc = Callable[["State", Any], Awaitable[Any]]


# ============================================================================
# MESSAGES
# ============================================================================

@dataclass
class IncomingMessage:
    """
    Normalized inbound message from any channel.
    Channel formatters produce this; hooks parse it.
    """
    channel: str  # "web", "facebook", "telegram", ...
    text: Optional[str] = None
    message_id: Optional[str] = None
    sender_id: Optional[str] = None
    sender_name: Optional[str] = None
    payload: Optional[str] = None  # quick-reply / postback / button payload
    timestamp: Optional[int] = None
    raw: Any = field(default=None, repr=False)

    def has_text(self) -> bool:
        """Check if message contains text"""
        return bool(self.text and self.text.strip())


@dataclass
class RegexParseResult:
    """Result of a pattern hook's parse step."""
    message: IncomingMessage
    index: int  # position of the matching pattern in the hook's pattern list
    match: re.Match

    @property
    def groups(self) -> tuple:
        """Captured groups of the winning pattern"""
        return self.match.groups()


# ============================================================================
# TOPICS AND HOOKS (immutable, created once at registration)
# ============================================================================

@dataclass(frozen=True, eq=False)
class Hook:
    """A named (parse, handle) pair."""
    name: str
    parse: ParseFunc
    handler: HandlerFunc
    topic: Optional[str] = None  # name of the owning topic, for logs and metrics


@dataclass(frozen=True, eq=False)
class Topic:
    """
    A named conversation unit.

    Root topics replace the whole context stack when entered; other topics
    nest on top of the caller. ``callbacks`` lists the continuations this
    topic hands to the topics it enters, which lets durable session stores
    persist them by name.
    """
    name: str
    init: InitFunc
    is_root: bool = False
    hooks: tuple[Hook, ...] = ()
    callbacks: tuple[Continuation, ...] = ()
    after_init: Optional[AfterInitFunc] = None

    def find_callback(self, name: str) -> Optional[Continuation]:
        for cb in self.callbacks:
            if callback_name(cb) == name:
                return cb
        return None


def callback_name(cb: Continuation) -> str:
    return getattr(cb, "__name__", repr(cb))


# ============================================================================
# CONTEXTS AND SESSIONS
# ============================================================================

@dataclass(eq=False)
class Context:
    """
    One activation of a topic within a session's stack.

    Contexts compare by identity: the stack discipline checks that a
    caller holds *the* top context, not an equal-looking one.
    """
    topic: Optional[Topic]
    data: Any = None
    parent_topic: Optional[Topic] = None
    yak_session: Optional["YakSession"] = field(default=None, repr=False)
    active_hooks: list[str] = field(default_factory=list)
    disabled_hooks: list[str] = field(default_factory=list)
    continuation: Optional[Continuation] = field(default=None, repr=False)
    # Name of a stored topic that is no longer registered; topic is None then
    unregistered_topic: Optional[str] = None

    @property
    def topic_name(self) -> Optional[str]:
        return self.topic.name if self.topic else self.unregistered_topic


@dataclass
class State:
    """What hooks, handlers and continuations receive: the caller's context and the external session."""
    context: Optional[Context]
    session: Any


@dataclass(eq=False)
class YakSession:
    """
    The persisted unit: one end-user conversation.

    ``contexts`` is a LIFO stack whose last element is the active context.
    Engine code only touches it through ``top``/``push``/``pop``/``reset``.
    """
    id: str
    type: str
    contexts: list[Context] = field(default_factory=list)
    topics: Sequence[Topic] = field(default_factory=tuple, repr=False)
    virgin: bool = True

    def top(self) -> Optional[Context]:
        return self.contexts[-1] if self.contexts else None

    def push(self, context: Context) -> None:
        context.yak_session = self
        self.contexts.append(context)

    def pop(self) -> Context:
        return self.contexts.pop()

    def reset(self, context: Context) -> None:
        """Replace the whole stack with a single context."""
        context.yak_session = self
        self.contexts = [context]

    def find_topic(self, name: str) -> Optional[Topic]:
        return find_topic(name, self.topics)


def find_topic(name: str, topics: Sequence[Topic]) -> Optional[Topic]:
    for topic in topics:
        if topic.name == name:
            return topic
    return None
