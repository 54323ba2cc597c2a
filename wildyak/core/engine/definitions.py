# wildyak/core/engine/definitions.py
"""
Builders for the descriptors the engine works with.

These are pure factories: nothing is registered or executed when they
are called. A bot is a list of topics built here and handed to
``wildyak.init``.
"""
from __future__ import annotations

import re
from typing import Optional, Sequence, Union

from wildyak.core.engine.domain import (
    AfterInitFunc,
    Continuation,
    HandlerFunc,
    Hook,
    IncomingMessage,
    InitFunc,
    ParseFunc,
    RegexParseResult,
    State,
    Topic,
)

# The owning topic, or just its name: hooks are usually built before
# the topic that lists them.
TopicRef = Union[Topic, str, None]


def _topic_name(topic: TopicRef) -> Optional[str]:
    if isinstance(topic, Topic):
        return topic.name
    return topic


def def_topic(
    name: str,
    init: InitFunc,
    *,
    is_root: bool = False,
    hooks: Optional[Sequence[Hook]] = None,
    callbacks: Optional[Sequence[Continuation]] = None,
    after_init: Optional[AfterInitFunc] = None,
) -> Topic:
    """
    Assemble a topic descriptor.

    Args:
        name: Unique topic name within the registry ("main" and "global" are special)
        init: async (init_args, external_session) -> context data
        is_root: Entering a root topic replaces the whole context stack
        hooks: Hooks scoped to this topic, evaluated in this order
        callbacks: Continuations this topic passes to enter_topic
        after_init: async (state, external_session), run once the new context is active
    """
    return Topic(
        name=name,
        init=init,
        is_root=is_root,
        hooks=tuple(hooks or ()),
        callbacks=tuple(callbacks or ()),
        after_init=after_init,
    )


def def_pattern(
    topic: TopicRef,
    name: str,
    patterns: Sequence[Union[str, re.Pattern]],
    handler: HandlerFunc,
) -> Hook:
    """
    Build a hook that matches the message text against regular expressions.

    Every pattern is searched in list order. The pattern whose match starts
    earliest in the text wins; on equal start positions the earlier pattern
    in the list wins. This is not a plain "first pattern in the list that
    matches" scan: with [foo, bar] the text "barfoo" matches bar (index 1).

    The handler receives a RegexParseResult.
    """
    compiled = [re.compile(p) if isinstance(p, str) else p for p in patterns]

    async def parse(state: State, message: Optional[IncomingMessage]) -> Optional[RegexParseResult]:
        if message is None or message.text is None:
            return None

        text = message.text
        best: Optional[RegexParseResult] = None
        for i, pattern in enumerate(compiled):
            match = pattern.search(text)
            if match and (best is None or match.start() < best.match.start()):
                best = RegexParseResult(message=message, index=i, match=match)
        return best

    return Hook(name=name, parse=parse, handler=handler, topic=_topic_name(topic))


def def_hook(
    topic: TopicRef,
    name: str,
    parse: ParseFunc,
    handler: HandlerFunc,
) -> Hook:
    """Bind an arbitrary parse/handle pair as a hook."""
    return Hook(name=name, parse=parse, handler=handler, topic=_topic_name(topic))
