"""Typed retry and provider events, dispatched in-process by payload type."""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from datetime import UTC, datetime
from typing import Any, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field

logger = structlog.get_logger()


class RetryEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    chat_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CommandSaved(RetryEvent):
    message_id: str
    tool: str | None = None
    failed: bool = False


class RetryRequested(RetryEvent):
    provider_override: str | None = None
    step_numbers: list[int] | None = None
    step_tools: list[str] | None = None


class RetryCompleted(RetryEvent):
    success: bool
    error: str | None = None


class ProviderAttempted(RetryEvent):
    task_type: str
    provider: str


class ProviderFailed(RetryEvent):
    task_type: str
    provider: str
    reason: str


E = TypeVar("E", bound=RetryEvent)
EventHandler = Callable[[Any], Coroutine[Any, Any, None]]


class EventBus:
    """Delivers each event to the handlers subscribed to its exact type."""

    def __init__(self) -> None:
        self._handlers: dict[type[RetryEvent], list[EventHandler]] = {}

    def subscribe(
        self, event_type: type[E], handler: Callable[[E], Coroutine[Any, Any, None]]
    ) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: type[RetryEvent], handler: EventHandler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: RetryEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    "event_handler_error",
                    event_type=type(event).__name__,
                    chat_id=event.chat_id,
                    handler_name=getattr(handler, "__name__", repr(handler)),
                )


async def emit_optional(bus: EventBus | None, event: RetryEvent) -> None:
    if bus is not None:
        await bus.emit(event)
