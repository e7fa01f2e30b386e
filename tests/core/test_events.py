"""Tests for the event bus."""

import pytest

from hashbot.core.events import (
    EventBus,
    ProviderAttempted,
    ProviderFailed,
    RetryCompleted,
    RetryRequested,
    emit_optional,
)


class TestEventBus:
    @pytest.mark.asyncio
    async def test_emit_to_subscribers(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(RetryRequested, handler)
        await bus.emit(RetryRequested(chat_id="c1", provider_override="grok"))
        assert len(received) == 1
        assert received[0].chat_id == "c1"
        assert received[0].provider_override == "grok"

    @pytest.mark.asyncio
    async def test_other_event_types_not_delivered(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(ProviderAttempted, handler)
        await bus.emit(ProviderFailed(chat_id="c1", task_type="image", provider="gemini", reason="x"))
        await bus.emit(RetryCompleted(chat_id="c1", success=True))
        assert received == []

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(RetryRequested, handler)
        bus.unsubscribe(RetryRequested, handler)
        await bus.emit(RetryRequested(chat_id="c1"))
        assert received == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        async def broken(event):
            raise RuntimeError("boom")

        async def handler(event):
            received.append(event)

        bus.subscribe(RetryRequested, broken)
        bus.subscribe(RetryRequested, handler)
        await bus.emit(RetryRequested(chat_id="c1"))
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_emit_optional_without_bus(self):
        await emit_optional(None, RetryRequested(chat_id="c1"))

    def test_events_are_frozen(self):
        event = RetryCompleted(chat_id="c1", success=False, error="quota")
        with pytest.raises(ValueError):
            event.success = True
