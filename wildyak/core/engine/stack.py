# wildyak/core/engine/stack.py
"""
Context stack manager: the push/pop discipline for nested topics.

Hook handlers call ``enter_topic`` / ``exit_topic`` with the state they
were given. Both refuse to act unless that state's context is the top of
its session's stack, so a handler holding a stale context cannot corrupt
the conversation.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

from wildyak.core.engine.domain import Context, Continuation, State, Topic, YakSession
from wildyak.core.engine.errors import StackDisciplineError
from wildyak.infra.logging_config import get_logger
from wildyak.infra.metrics import AppMetrics

logger = get_logger(__name__)


def active_context(yak_session: YakSession) -> Optional[Context]:
    """Return the active (top) context, or None if the stack is empty."""
    return yak_session.top()


def _session_of(state: State) -> YakSession:
    context = state.context
    if context is None or context.yak_session is None:
        raise StackDisciplineError("State does not belong to a session.")
    return context.yak_session


async def enter_topic(
    topic: Optional[Topic],
    state: State,
    new_topic: Topic,
    args: Any = None,
    cb: Optional[Continuation] = None,
) -> None:
    """
    Enter ``new_topic`` from the caller's context.

    Root topics replace the whole stack (discarded contexts' continuations
    are never run); other topics are pushed on top. If ``after_init`` fails
    the new context stays installed.

    Args:
        topic: The calling topic (recorded as the new context's parent)
        state: The caller's state; its context must be the top of the stack
        new_topic: Topic to enter
        args: Passed to ``new_topic.init``
        cb: Continuation invoked with the parent's state when the new context exits

    Raises:
        StackDisciplineError: If the stack is non-empty and the caller's context is not its top
    """
    yak_session = _session_of(state)
    context_on_stack = active_context(yak_session)

    if context_on_stack is not None and state.context is not context_on_stack:
        raise StackDisciplineError("You can only enter a new context from the last context.")

    data = await new_topic.init(args, state.session)

    new_context = Context(
        topic=new_topic,
        data=data,
        parent_topic=topic,
        active_hooks=[],
        disabled_hooks=[],
        continuation=cb,
    )

    if new_topic.is_root:
        yak_session.reset(new_context)
    else:
        yak_session.push(new_context)

    logger.debug(
        f"Entered topic '{new_topic.name}' from '{topic.name if topic else None}' "
        f"(root={new_topic.is_root}, depth={len(yak_session.contexts)})"
    )
    AppMetrics.topic_entered(new_topic.name, new_topic.is_root)

    if new_topic.after_init is not None:
        await new_topic.after_init(State(context=new_context, session=state.session), state.session)


async def exit_topic(topic: Optional[Topic], state: State, args: Any = None) -> Any:
    """
    Exit the caller's context and hand ``args`` to its continuation.

    Returns:
        The continuation's result, or None if the context had no continuation

    Raises:
        StackDisciplineError: If the caller's context is not the top of the stack
    """
    yak_session = _session_of(state)

    if state.context is not active_context(yak_session):
        raise StackDisciplineError("You can only exit from the current context.")

    last_context = yak_session.pop()
    parent_context = active_context(yak_session)

    logger.debug(
        f"Exited topic '{last_context.topic_name}' "
        f"(depth={len(yak_session.contexts)}, continuation={last_context.continuation is not None})"
    )
    AppMetrics.topic_exited(last_context.topic_name or "")

    if last_context.continuation is not None:
        return await last_context.continuation(
            State(context=parent_context, session=state.session), args
        )
    return None


def disable_hooks_except(state: State, names: Sequence[str]) -> None:
    """Only the named global hooks stay eligible while this context is active."""
    state.context.active_hooks = list(names)


def disable_hooks(state: State, names: Sequence[str]) -> None:
    """The named global hooks are not eligible while this context is active."""
    state.context.disabled_hooks = list(names)
