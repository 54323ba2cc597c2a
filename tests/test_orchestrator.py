# tests/test_orchestrator.py
"""Tests for the session orchestrator (init / YakHandler)"""
from dataclasses import dataclass

import pytest

from conftest import empty_init
from wildyak import (
    InitOptions,
    MessageBatch,
    MessageOptions,
    SingleMessage,
    def_hook,
    def_pattern,
    def_topic,
    enter_topic,
    exit_topic,
    init,
)
from wildyak.core.engine.domain import IncomingMessage
from wildyak.core.engine.errors import UnknownChannelError, UnknownStrategyError
from wildyak.core.engine.orchestrator import as_batch, default_session_id, default_session_type
from wildyak.infra.memory_session_store import InMemorySessionStore
from wildyak.infra.metrics import get_metrics_collector


class RecordingStore(InMemorySessionStore):
    """In-memory store that also counts calls"""

    def __init__(self):
        super().__init__()
        self.get_calls = []
        self.save_calls = 0

    async def get(self, session_id, topics):
        self.get_calls.append((session_id, tuple(t.name for t in topics)))
        return await super().get(session_id, topics)

    async def save(self, session):
        self.save_calls += 1
        await super().save(session)


async def hello_handler(state, result):
    return "hi"


def hello_bot():
    main = def_topic("main", empty_init, is_root=True,
                     hooks=[def_pattern("main", "hello", [r"hello"], hello_handler)])
    return [main]


def echo_bot(seen):
    async def parse(state, message):
        return message

    async def handler(state, message):
        seen.append(message.text)
        return message.text

    main = def_topic("main", empty_init, is_root=True, hooks=[def_hook("main", "echo", parse, handler)])
    return [main]


class TestBootstrap:
    def setup_method(self):
        self.store = RecordingStore()
        self.session = {"id": "user_1", "type": "web"}

    @pytest.mark.asyncio
    async def test_virgin_session_enters_main_and_processes_message(self):
        handler = init(hello_bot(), InitOptions(session_store=self.store))

        result = await handler(self.session, "hello")

        assert result == ["hi"]
        saved = self.store.sessions["user_1"]
        assert saved.virgin is False
        assert len(saved.contexts) == 1
        assert saved.contexts[0].topic.name == "main"
        assert saved.type == "web"

    @pytest.mark.asyncio
    async def test_main_is_entered_only_once(self):
        inits = []

        async def init_main(args, session):
            inits.append(args)
            return {"count": 0}

        async def count(state, result):
            state.context.data["count"] += 1
            return state.context.data["count"]

        main = def_topic("main", init_main, is_root=True, hooks=[def_pattern("main", "c", [r"."], count)])
        handler = init([main], InitOptions(session_store=self.store))

        assert await handler(self.session, "a") == [1]
        assert await handler(self.session, "b") == [2]
        assert inits == [None]

    @pytest.mark.asyncio
    async def test_no_main_topic_leaves_stack_empty(self):
        global_topic = def_topic("global", empty_init,
                                 hooks=[def_pattern("global", "hello", [r"hello"], hello_handler)])
        handler = init([global_topic], InitOptions(session_store=self.store))

        assert await handler(self.session, "hello") == ["hi"]
        saved = self.store.sessions["user_1"]
        assert saved.virgin is False
        assert saved.contexts == []

    @pytest.mark.asyncio
    async def test_main_context_parent_is_global_topic(self):
        global_topic = def_topic("global", empty_init)
        handler = init(hello_bot() + [global_topic], InitOptions(session_store=self.store))

        await handler(self.session, "hello")

        assert self.store.sessions["user_1"].contexts[0].parent_topic is global_topic

    @pytest.mark.asyncio
    async def test_store_gets_full_registry_and_session_gets_non_global(self):
        global_topic = def_topic("global", empty_init)
        handler = init(hello_bot() + [global_topic], InitOptions(session_store=self.store))

        await handler(self.session, "hello")

        assert self.store.get_calls == [("user_1", ("main", "global"))]
        assert [t.name for t in self.store.sessions["user_1"].topics] == ["main"]


class TestPersistence:
    def setup_method(self):
        self.store = RecordingStore()
        self.session = {"id": "user_1", "type": "web"}

    @pytest.mark.asyncio
    async def test_no_match_still_saves(self):
        handler = init(hello_bot(), InitOptions(session_store=self.store))

        assert await handler(self.session, "nothing to see") == []
        assert self.store.save_calls == 1

    @pytest.mark.asyncio
    async def test_failure_skips_save_and_discards_mutation(self):
        async def init_child(args, session):
            return {}

        child = def_topic("child", init_child)

        async def go(state, result):
            await enter_topic(state.context.topic, state, child, None)
            raise RuntimeError("handler crashed")

        main = def_topic("main", empty_init, is_root=True, hooks=[def_pattern("main", "go", [r"go"], go)])
        handler = init([main, child], InitOptions(session_store=self.store))

        await handler(self.session, "warm up")
        assert self.store.save_calls == 1

        with pytest.raises(RuntimeError, match="handler crashed"):
            await handler(self.session, "go")

        assert self.store.save_calls == 1
        saved = self.store.sessions["user_1"]
        assert [c.topic.name for c in saved.contexts] == ["main"]

    @pytest.mark.asyncio
    async def test_nested_topic_round_trip(self):
        async def init_ask(args, session):
            return {"question": args}

        async def on_answer(state, result):
            return await exit_topic(ask, state, result.groups[0])

        ask = def_topic("ask", init_ask, hooks=[def_pattern("ask", "answer", [r"my name is (\w+)"], on_answer)])

        async def on_named(state, name):
            state.context.data["name"] = name
            return f"Nice to meet you, {name}"

        async def start(state, result):
            await enter_topic(main, state, ask, "name?", on_named)
            return "What is your name?"

        async def whoami(state, result):
            return state.context.data.get("name", "unknown")

        main = def_topic(
            "main", empty_init, is_root=True,
            hooks=[def_pattern("main", "start", [r"^start"], start),
                   def_pattern("main", "whoami", [r"^who am i"], whoami)],
            callbacks=[on_named],
        )
        handler = init([main, ask], InitOptions(session_store=self.store))

        assert await handler(self.session, "start") == ["What is your name?"]
        assert len(self.store.sessions["user_1"].contexts) == 2
        assert await handler(self.session, "my name is Ada") == ["Nice to meet you, Ada"]
        assert len(self.store.sessions["user_1"].contexts) == 1
        assert await handler(self.session, "who am i") == ["Ada"]

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self):
        seen = []
        handler = init(echo_bot(seen), InitOptions(session_store=self.store))

        await handler({"id": "a", "type": "web"}, "one")
        await handler({"id": "b", "type": "web"}, "two")

        assert set(self.store.sessions) == {"a", "b"}


class TestStrategies:
    def setup_method(self):
        self.seen = []
        self.session = {"id": "user_1", "type": "web"}

    def handler(self, **message_options):
        return init(echo_bot(self.seen), InitOptions(message_options=MessageOptions(**message_options)))

    @pytest.mark.asyncio
    async def test_last(self):
        result = await self.handler(strategy="last")(self.session, ["a", "b", "c"])

        assert result == ["c"]
        assert self.seen == ["c"]

    @pytest.mark.asyncio
    async def test_first(self):
        result = await self.handler(strategy="first")(self.session, ["a", "b", "c"])

        assert result == ["a"]
        assert self.seen == ["a"]

    @pytest.mark.asyncio
    async def test_single_processes_each_and_returns_last(self):
        result = await self.handler(strategy="single")(self.session, ["a", "b", "c"])

        assert result == ["c"]
        assert self.seen == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_merge(self):
        result = await self.handler(strategy="merge")(self.session, ["a", "b", "c"])

        assert result == ["a b c"]
        assert self.seen == ["a b c"]

    @pytest.mark.asyncio
    async def test_custom_sync_parser(self):
        def pick_longest(messages):
            return max(messages, key=lambda m: len(m.text))

        result = await self.handler(strategy="custom", message_parser=pick_longest)(
            self.session, ["a", "bbb", "cc"]
        )

        assert result == ["bbb"]

    @pytest.mark.asyncio
    async def test_custom_async_parser(self):
        async def shout(messages):
            return IncomingMessage(channel="web", text="!".join(m.text for m in messages))

        result = await self.handler(strategy="custom", message_parser=shout)(self.session, ["a", "b"])

        assert result == ["a!b"]

    @pytest.mark.asyncio
    async def test_single_raw_message(self):
        assert await self.handler(strategy="last")(self.session, "solo") == ["solo"]

    @pytest.mark.asyncio
    async def test_explicit_batch_types(self):
        handler = self.handler(strategy="first")
        assert await handler(self.session, SingleMessage("one")) == ["one"]
        assert await handler(self.session, MessageBatch(("two", "three"))) == ["two"]

    @pytest.mark.asyncio
    async def test_default_strategy_is_last(self):
        handler = init(echo_bot(self.seen))
        assert await handler(self.session, ["a", "b"]) == ["b"]

    @pytest.mark.asyncio
    async def test_unknown_strategy(self):
        store = RecordingStore()
        handler = init(echo_bot(self.seen), InitOptions(
            session_store=store, message_options=MessageOptions(strategy="random")
        ))

        with pytest.raises(UnknownStrategyError, match="random"):
            await handler(self.session, "a")
        assert store.get_calls == []
        assert store.save_calls == 0

    @pytest.mark.asyncio
    async def test_custom_without_parser(self):
        with pytest.raises(UnknownStrategyError, match="message_parser"):
            await self.handler(strategy="custom")(self.session, "a")

    @pytest.mark.asyncio
    async def test_counts_processed_messages(self):
        await self.handler(strategy="last")(self.session, ["a", "b"])
        counters = get_metrics_collector().get_metrics()["counters"]
        assert counters["yak_messages_processed_total{session_type=web,strategy=last}"] == 1


class TestOptions:
    @pytest.mark.asyncio
    async def test_custom_session_id_and_type(self):
        store = RecordingStore()
        seen = []
        handler = init(echo_bot(seen), InitOptions(
            session_store=store,
            get_session_id=lambda s: f"user:{s['user']}",
            get_session_type=lambda s: s["channel"],
        ))

        await handler({"user": 7, "channel": "web"}, "hi")

        assert store.sessions["user:7"].type == "web"

    @pytest.mark.asyncio
    async def test_unknown_channel(self):
        handler = init(hello_bot())
        with pytest.raises(UnknownChannelError, match="sms"):
            await handler({"id": "user_1", "type": "sms"}, "hello")

    @pytest.mark.asyncio
    async def test_custom_formatters(self):
        class UpperFormatter:
            def parse_incoming_message(self, raw):
                return IncomingMessage(channel="sms", text=raw.upper())

            def merge_incoming_messages(self, raws):
                return IncomingMessage(channel="sms", text="".join(raws).upper())

        seen = []
        handler = init(echo_bot(seen), InitOptions(formatters={"sms": UpperFormatter()}))

        assert await handler({"id": "u", "type": "sms"}, "hi") == ["HI"]

    def test_default_readers_accept_mappings_and_objects(self):
        @dataclass
        class ExternalSession:
            id: int
            type: str

        assert default_session_id({"id": "x", "type": "web"}) == "x"
        assert default_session_type({"id": "x", "type": "web"}) == "web"
        assert default_session_id(ExternalSession(5, "telegram")) == "5"
        assert default_session_type(ExternalSession(5, "telegram")) == "telegram"

    def test_as_batch(self):
        assert as_batch("a").raws == ("a",)
        assert as_batch(["a", "b"]).raws == ("a", "b")
        assert as_batch({"text": "a"}).raws == ({"text": "a"},)
        with pytest.raises(ValueError):
            as_batch([])

    def test_options_from_settings(self):
        from wildyak.config import Settings

        options = InitOptions.from_settings(Settings(default_message_strategy="merge", session_store="memory"))

        assert options.message_options.strategy == "merge"
        assert isinstance(options.session_store, InMemorySessionStore)

    def test_options_from_settings_overrides(self):
        from wildyak.config import Settings

        store = RecordingStore()
        options = InitOptions.from_settings(Settings(), session_store=store)

        assert options.session_store is store
