# wildyak/core/engine/__init__.py
"""
Core engine -- channel-agnostic dialog management.

This package contains the domain models, the abstract protocols (ports),
the topic/hook builders, the context stack manager, the hook dispatcher
and the session orchestrator.

Canonical imports:
    from wildyak.core.engine import init, def_topic, def_pattern, enter_topic
    from wildyak.core.engine.domain import Topic, Context, YakSession
    from wildyak.core.engine.ports import AsyncSessionStore
"""
from wildyak.core.engine.domain import (  # noqa: F401
    IncomingMessage,
    RegexParseResult,
    Hook,
    Topic,
    Context,
    State,
    YakSession,
)
from wildyak.core.engine.errors import (  # noqa: F401
    YakError,
    StackDisciplineError,
    UnknownStrategyError,
    UnknownChannelError,
    SessionSerializationError,
)
from wildyak.core.engine.ports import AsyncSessionStore, MessageFormatter  # noqa: F401
from wildyak.core.engine.definitions import def_topic, def_pattern, def_hook  # noqa: F401
from wildyak.core.engine.stack import (  # noqa: F401
    active_context,
    enter_topic,
    exit_topic,
    disable_hooks_except,
    disable_hooks,
)
from wildyak.core.engine.dispatcher import run_hook, process_message  # noqa: F401
from wildyak.core.engine.orchestrator import (  # noqa: F401
    init,
    InitOptions,
    MessageOptions,
    MessageStrategy,
    SingleMessage,
    MessageBatch,
    YakHandler,
)
