"""Tests for the async EventBus."""

import pytest

from ass_chat.events.bus import EventBus, namespace
from ass_chat.types import ChatEvent, EventType


@pytest.fixture
def bus():
    return EventBus()


class TestSubscribeAndEmit:
    @pytest.mark.asyncio
    async def test_async_handler(self, bus: EventBus):
        received = []

        async def handler(event: ChatEvent):
            received.append(event)

        bus.subscribe(EventType.CHAT_STARTED, handler)
        ev = ChatEvent(type=EventType.CHAT_STARTED, data={"messages": 2})
        await bus.emit(ev)

        assert received == [ev]

    @pytest.mark.asyncio
    async def test_sync_handler_and_no_cross_delivery(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.CHAT_DONE, received.append)
        await bus.emit(ChatEvent(type=EventType.CHAT_STARTED))
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        assert [e.type for e in received] == [EventType.CHAT_DONE]

    @pytest.mark.asyncio
    async def test_wildcard_receives_all(self, bus: EventBus):
        received = []
        bus.subscribe("*", lambda e: received.append(e.type))
        await bus.emit(ChatEvent(type=EventType.CHAT_STARTED))
        await bus.emit(ChatEvent(type=EventType.AUTH_SESSIONS_CHANGED))
        assert received == [EventType.CHAT_STARTED, EventType.AUTH_SESSIONS_CHANGED]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.CHAT_ERROR, received.append)
        bus.unsubscribe(EventType.CHAT_ERROR, received.append)
        bus.unsubscribe(EventType.CHAT_ERROR, received.append)
        await bus.emit(ChatEvent(type=EventType.CHAT_ERROR))
        assert received == []


class TestErrorIsolation:
    @pytest.mark.asyncio
    async def test_failing_handler_does_not_propagate(self, bus: EventBus):
        received = []

        def bad(event):
            raise ValueError("boom")

        bus.subscribe(EventType.CHAT_DONE, bad)
        bus.subscribe(EventType.CHAT_DONE, received.append)
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        assert len(received) == 1


class TestHistory:
    @pytest.mark.asyncio
    async def test_bounded(self):
        bus = EventBus(max_history=3)
        for _ in range(5):
            await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        assert len(bus.history) == 3

    @pytest.mark.asyncio
    async def test_clear(self, bus: EventBus):
        bus.subscribe("*", lambda e: None)
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        bus.clear()
        assert bus.history == []


class TestNamespaces:
    @pytest.mark.asyncio
    async def test_namespace_pattern(self, bus: EventBus):
        received = []
        bus.subscribe("auth.*", lambda e: received.append(e.type))
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        await bus.emit(ChatEvent(type=EventType.AUTH_SESSIONS_CHANGED))
        assert received == [EventType.AUTH_SESSIONS_CHANGED]

    @pytest.mark.asyncio
    async def test_exact_namespace_and_wildcard_all_fire(self, bus: EventBus):
        received = []
        bus.subscribe(EventType.CHAT_ERROR, lambda e: received.append("exact"))
        bus.subscribe("chat.*", lambda e: received.append("namespace"))
        bus.subscribe("*", lambda e: received.append("all"))
        await bus.emit(ChatEvent(type=EventType.CHAT_ERROR))
        assert sorted(received) == ["all", "exact", "namespace"]

    def test_unknown_name_rejected(self, bus: EventBus):
        with pytest.raises(ValueError):
            bus.subscribe("chat.finished", lambda e: None)

    @pytest.mark.asyncio
    async def test_subscribe_returns_unsubscriber(self, bus: EventBus):
        received = []
        stop = bus.subscribe("chat.*", received.append)
        await bus.emit(ChatEvent(type=EventType.CHAT_STARTED))
        stop()
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        assert [e.type for e in received] == [EventType.CHAT_STARTED]

    @pytest.mark.asyncio
    async def test_history_for_namespace(self, bus: EventBus):
        await bus.emit(ChatEvent(type=EventType.CHAT_STARTED))
        await bus.emit(ChatEvent(type=EventType.AUTH_SESSIONS_CHANGED))
        await bus.emit(ChatEvent(type=EventType.CHAT_DONE))
        assert [e.type for e in bus.history_for("auth")] == [EventType.AUTH_SESSIONS_CHANGED]
        assert len(bus.history_for("chat")) == 2

    def test_namespace_of(self):
        assert namespace(EventType.CHAT_CANCELLED) == "chat"
        assert namespace("auth.sessions_changed") == "auth"
