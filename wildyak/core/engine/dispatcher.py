# wildyak/core/engine/dispatcher.py
"""
Hook dispatcher: decides which hook handles an incoming message.

Resolution is two-phase and first-match-wins in each phase:

1. the active context's own topic hooks, in declaration order;
2. the global topic's hooks, in declaration order, filtered by the
   active context's allow-list (``active_hooks``) or, when that is
   empty, its deny-list (``disabled_hooks``).
"""
from __future__ import annotations

from typing import Any, Optional, Tuple

from wildyak.core.engine.domain import Context, Hook, IncomingMessage, State, Topic, YakSession
from wildyak.core.engine.stack import active_context
from wildyak.infra.logging_config import get_logger
from wildyak.infra.metrics import AppMetrics

logger = get_logger(__name__)


async def run_hook(hook: Hook, state: State, message: Optional[IncomingMessage]) -> Tuple[bool, Any]:
    """
    Run a single hook against a message.

    Returns:
        (True, handler_result) if the hook's parse matched, else (False, None)
    """
    parse_result = await hook.parse(state, message)
    if parse_result is not None:
        handler_result = await hook.handler(state, parse_result)
        return True, handler_result
    return False, None


def is_hook_eligible(hook: Hook, context: Optional[Context]) -> bool:
    """Check whether a global hook may run while ``context`` is active."""
    if context is None:
        return True
    if context.active_hooks:
        return hook.name in context.active_hooks
    if context.disabled_hooks:
        return hook.name not in context.disabled_hooks
    return True


def normalize_result(handler_result: Any) -> list:
    """Handler results become a list of outgoing messages."""
    if handler_result is None:
        return []
    if isinstance(handler_result, (list, tuple)):
        return list(handler_result)
    return [handler_result]


async def process_message(
    session: Any,
    message: Optional[IncomingMessage],
    yak_session: YakSession,
    global_topic: Optional[Topic],
    global_context: Context,
) -> list:
    """
    Dispatch one message and return the outgoing messages.

    Args:
        session: The external session object (handed to hooks as ``state.session``)
        message: Normalized incoming message
        yak_session: Session whose context stack is consulted
        global_topic: Topic named "global", or None if the bot has none
        global_context: Context used for global hooks when the stack is empty

    Returns:
        The matching handler's result as a list; empty if nothing matched
    """
    handled = False
    handler_result: Any = None

    context = active_context(yak_session)

    # Local topic first
    if context is not None:
        current_topic = yak_session.find_topic(context.topic_name)
        if current_topic is None:
            logger.warning(
                f"Active context topic '{context.topic_name}' is not registered, skipping local hooks"
            )
        else:
            for hook in current_topic.hooks:
                handled, handler_result = await run_hook(hook, State(context=context, session=session), message)
                if handled:
                    logger.debug(f"Local hook '{hook.name}' of topic '{current_topic.name}' matched")
                    AppMetrics.hook_matched(current_topic.name, hook.name, "local")
                    break

    # Then the global topic, scoped by the active context's allow/deny lists
    if not handled and global_topic is not None:
        for hook in global_topic.hooks:
            if not is_hook_eligible(hook, context):
                continue
            handled, handler_result = await run_hook(
                hook, State(context=context or global_context, session=session), message
            )
            if handled:
                logger.debug(f"Global hook '{hook.name}' matched")
                AppMetrics.hook_matched(global_topic.name, hook.name, "global")
                break

    if not handled:
        logger.debug(f"No hook matched (active topic={context.topic_name if context else None})")
        AppMetrics.no_match(yak_session.type)
        return []

    return normalize_result(handler_result)
