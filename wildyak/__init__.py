# wildyak/__init__.py
"""
wildyak -- topic-stack dialog runtime for conversational bots.

    from wildyak import init, def_topic, def_pattern, enter_topic, exit_topic
"""
from wildyak.core.engine import (  # noqa: F401
    IncomingMessage,
    RegexParseResult,
    Hook,
    Topic,
    Context,
    State,
    YakSession,
    YakError,
    StackDisciplineError,
    UnknownStrategyError,
    UnknownChannelError,
    SessionSerializationError,
    AsyncSessionStore,
    MessageFormatter,
    def_topic,
    def_pattern,
    def_hook,
    active_context,
    enter_topic,
    exit_topic,
    disable_hooks_except,
    disable_hooks,
    run_hook,
    process_message,
    init,
    InitOptions,
    MessageOptions,
    MessageStrategy,
    SingleMessage,
    MessageBatch,
    YakHandler,
)

__version__ = "0.4.0"
