# wildyak/core/engine/orchestrator.py
"""
Session orchestrator: one incoming batch -> outgoing messages cycle.

Workflow: strategy check -> session load/create -> root bootstrap ->
message selection -> dispatch -> persistence.

The host must serialize calls per session id; two concurrent calls for
the same id race on load/save and the last save wins.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from wildyak.core.engine.dispatcher import process_message
from wildyak.core.engine.domain import Context, IncomingMessage, State, Topic, YakSession, find_topic
from wildyak.core.engine.errors import UnknownChannelError, UnknownStrategyError
from wildyak.core.engine.ports import AsyncSessionStore, MessageFormatter
from wildyak.core.engine.stack import enter_topic
from wildyak.infra.logging_config import LogContext, get_logger, mask_id
from wildyak.infra.metrics import AppMetrics

logger = get_logger(__name__)

GLOBAL_TOPIC = "global"
MAIN_TOPIC = "main"


class MessageStrategy(str, Enum):
    """How a batch of raw messages collapses into processed messages"""
    SINGLE = "single"  # process each message, return the last result
    MERGE = "merge"  # formatter merges the batch into one message
    FIRST = "first"
    LAST = "last"
    CUSTOM = "custom"  # message_parser picks/builds the message


# ============================================================================
# BATCH INPUT
# ============================================================================

@dataclass(frozen=True)
class SingleMessage:
    raw: Any


@dataclass(frozen=True)
class MessageBatch:
    raws: tuple

    def __post_init__(self):
        if not self.raws:
            raise ValueError("MessageBatch needs at least one message")


Incoming = Union[SingleMessage, MessageBatch, Sequence[Any], Any]


def as_batch(messages: Incoming) -> MessageBatch:
    """Normalize handler input: lists and tuples are batches, anything else is one message."""
    if isinstance(messages, MessageBatch):
        return messages
    if isinstance(messages, SingleMessage):
        return MessageBatch((messages.raw,))
    if isinstance(messages, (list, tuple)):
        return MessageBatch(tuple(messages))
    return MessageBatch((messages,))


# ============================================================================
# OPTIONS
# ============================================================================

def _read_field(session: Any, name: str) -> Any:
    if isinstance(session, Mapping):
        return session[name]
    return getattr(session, name)


def default_session_id(session: Any) -> str:
    """Read the ``id`` field of the external session (mapping or object)."""
    return str(_read_field(session, "id"))


def default_session_type(session: Any) -> str:
    """Read the ``type`` field of the external session (mapping or object)."""
    return str(_read_field(session, "type"))


def _default_strategy() -> str:
    from wildyak.config import settings
    return settings.default_message_strategy


MessageParser = Callable[[list], Union[IncomingMessage, Awaitable[IncomingMessage]]]


@dataclass
class MessageOptions:
    strategy: str = field(default_factory=_default_strategy)
    message_parser: Optional[MessageParser] = None  # required for strategy="custom"

    def resolve(self) -> MessageStrategy:
        try:
            strategy = MessageStrategy(self.strategy)
        except ValueError:
            raise UnknownStrategyError(f"Unknown message strategy: {self.strategy!r}") from None
        if strategy is MessageStrategy.CUSTOM and self.message_parser is None:
            raise UnknownStrategyError("Message strategy 'custom' requires a message_parser.")
        return strategy


@dataclass
class InitOptions:
    """
    Every option has a stated default:
    - get_session_id / get_session_type read ``id`` / ``type``
    - message_options uses the configured default strategy ("last")
    - session_store is a fresh InMemorySessionStore
    - formatters are the built-in web, facebook and telegram formatters
    """
    get_session_id: Callable[[Any], str] = default_session_id
    get_session_type: Callable[[Any], str] = default_session_type
    message_options: MessageOptions = field(default_factory=MessageOptions)
    session_store: Optional[AsyncSessionStore] = None
    formatters: Optional[Mapping[str, MessageFormatter]] = None

    @classmethod
    def from_settings(cls, s=None, **overrides) -> "InitOptions":
        """Options with the strategy and session store chosen in Settings"""
        from wildyak.config import settings
        from wildyak.infra.session_stores import create_session_store

        s = s or settings
        values = {
            "message_options": MessageOptions(strategy=s.default_message_strategy),
            "session_store": create_session_store(s),
        }
        values.update(overrides)
        return cls(**values)


# ============================================================================
# HANDLER
# ============================================================================

class YakHandler:
    """
    The runtime entry point returned by ``init``.

    Call it with the external session and one raw message (or a batch) to
    get the list of outgoing messages.
    """

    def __init__(self, all_topics: Sequence[Topic], options: InitOptions) -> None:
        from wildyak.infra.memory_session_store import InMemorySessionStore
        from wildyak.transport.formatters import default_formatters

        self.all_topics = tuple(all_topics)
        self.global_topic = find_topic(GLOBAL_TOPIC, self.all_topics)
        self.topics = tuple(t for t in self.all_topics if t.name != GLOBAL_TOPIC)
        self.options = options
        self.sessions: AsyncSessionStore = (
            options.session_store if options.session_store is not None else InMemorySessionStore()
        )
        self.formatters: Mapping[str, MessageFormatter] = (
            dict(options.formatters) if options.formatters is not None else default_formatters()
        )

        if self.global_topic is None:
            logger.info("No 'global' topic registered, global hook phase disabled")

    def _formatter_for(self, session_type: str) -> MessageFormatter:
        formatter = self.formatters.get(session_type)
        if formatter is None:
            raise UnknownChannelError(
                f"No message formatter for channel '{session_type}'. "
                f"Available: {', '.join(self.formatters) or 'none'}"
            )
        return formatter

    async def __call__(self, session: Any, messages: Incoming) -> list:
        strategy = self.options.message_options.resolve()
        batch = as_batch(messages)

        session_id = self.options.get_session_id(session)
        session_type = self.options.get_session_type(session)
        formatter = self._formatter_for(session_type)
        log = LogContext(logger, session_id=session_id, session_type=session_type)

        saved = await self.sessions.get(session_id, self.all_topics)
        if saved is not None:
            yak_session = saved
            yak_session.topics = self.topics
        else:
            yak_session = YakSession(
                id=session_id, type=session_type, contexts=[], topics=self.topics, virgin=True
            )
            AppMetrics.session_created(session_type)
            log.info(f"New session {mask_id(session_id)}")

        global_context = Context(topic=self.global_topic, yak_session=yak_session)

        if yak_session.virgin:
            yak_session.virgin = False
            main_topic = yak_session.find_topic(MAIN_TOPIC)
            if main_topic is not None:
                await enter_topic(
                    self.global_topic,
                    State(context=global_context, session=session),
                    main_topic,
                    None,
                )

        with AppMetrics.track_processing_time(session_type):
            results = await self._dispatch(strategy, formatter, batch, session, yak_session, global_context)

        await self.sessions.save(yak_session)
        AppMetrics.message_processed(session_type, strategy.value)
        top = yak_session.top()
        log.bind(topic=top.topic_name if top else None).debug(
            f"Processed {len(batch.raws)} message(s) with strategy={strategy.value}, replies={len(results)}"
        )
        return results

    async def _dispatch(
        self,
        strategy: MessageStrategy,
        formatter: MessageFormatter,
        batch: MessageBatch,
        session: Any,
        yak_session: YakSession,
        global_context: Context,
    ) -> list:
        async def process(message: IncomingMessage) -> list:
            return await process_message(session, message, yak_session, self.global_topic, global_context)

        if strategy is MessageStrategy.LAST:
            return await process(formatter.parse_incoming_message(batch.raws[-1]))

        if strategy is MessageStrategy.FIRST:
            return await process(formatter.parse_incoming_message(batch.raws[0]))

        if strategy is MessageStrategy.SINGLE:
            results: list = []
            for raw in batch.raws:
                results = await process(formatter.parse_incoming_message(raw))
            return results

        if strategy is MessageStrategy.MERGE:
            return await process(formatter.merge_incoming_messages(list(batch.raws)))

        # CUSTOM
        parsed = [formatter.parse_incoming_message(raw) for raw in batch.raws]
        custom_message = self.options.message_options.message_parser(parsed)
        if inspect.isawaitable(custom_message):
            custom_message = await custom_message
        return await process(custom_message)


def init(topics: Sequence[Topic], options: Optional[InitOptions] = None) -> YakHandler:
    """
    Build the runtime handler for a bot.

    Args:
        topics: All topics of the bot; the one named "global" provides
                session-wide fallback hooks, the one named "main" is entered
                on a session's first message
        options: Runtime options, see InitOptions for defaults
    """
    return YakHandler(topics, options if options is not None else InitOptions())
