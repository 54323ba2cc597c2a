#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pizza Bot Example

Demonstrates nested topics: "main" enters "order" for the details of an
order and gets the result back through a continuation declared in its
callbacks. A "global" topic answers "help" anywhere, except while the
order topic has switched it off.

Run from project root:
    python examples/pizza_bot.py
"""
import asyncio
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wildyak import (  # noqa: E402
    InitOptions,
    MessageOptions,
    def_pattern,
    def_topic,
    disable_hooks,
    enter_topic,
    exit_topic,
    init,
)
from wildyak.infra.logging_config import setup_logging  # noqa: E402


# ============================================================================
# ORDER TOPIC (nested)
# ============================================================================

async def init_order(args, session):
    return {"size": None, "customer": args["customer"]}


async def on_size(state, result):
    size = result.groups[0].lower()
    state.context.data["size"] = size
    return await exit_topic(order_topic, state, {"size": size})


async def on_cancel(state, result):
    return await exit_topic(order_topic, state, {"size": None})


async def order_after_init(state, session):
    # No help while ordering; sizes are listed in the prompt
    disable_hooks(state, ["help"])


order_topic = def_topic(
    "order",
    init_order,
    hooks=[
        def_pattern("order", "size", [r"(?i)\b(small|medium|large)\b"], on_size),
        def_pattern("order", "cancel", [r"(?i)^cancel"], on_cancel),
    ],
    after_init=order_after_init,
)


# ============================================================================
# MAIN TOPIC (root)
# ============================================================================

async def init_main(args, session):
    return {"orders": []}


async def on_order_done(state, args):
    if args["size"] is None:
        return "Order cancelled."
    state.context.data["orders"].append(args["size"])
    return [f"One {args['size']} pizza coming up!", f"Orders so far: {len(state.context.data['orders'])}"]


async def on_order(state, result):
    await enter_topic(main_topic, state, order_topic, {"customer": state.session["id"]}, on_order_done)
    return "Small, medium or large?"


main_topic = def_topic(
    "main",
    init_main,
    is_root=True,
    hooks=[def_pattern("main", "order", [r"(?i)\border\b", r"(?i)\bpizza\b"], on_order)],
    callbacks=[on_order_done],
)


# ============================================================================
# GLOBAL TOPIC
# ============================================================================

async def init_global(args, session):
    return {}


async def on_help(state, result):
    return "Say 'order' to order a pizza."


global_topic = def_topic(
    "global",
    init_global,
    hooks=[def_pattern("global", "help", [r"(?i)^help"], on_help)],
)


async def demo():
    handler = init(
        [main_topic, order_topic, global_topic],
        InitOptions(message_options=MessageOptions(strategy="last")),
    )
    session = {"id": "demo_user_1", "type": "web"}

    for text in ["help", "I want to order", "help", "large", "pizza please", "cancel"]:
        replies = await handler(session, text)
        print(f"User: {text}")
        for reply in replies:
            print(f"Bot:  {reply}")
        if not replies:
            print("Bot:  (no reply)")
        print()


if __name__ == "__main__":
    setup_logging("INFO")
    asyncio.run(demo())
