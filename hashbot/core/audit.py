"""Append-only JSON lines audit log for retries and provider failovers."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from hashbot.core.events import ProviderFailed, RetryCompleted, RetryRequested

if TYPE_CHECKING:
    from hashbot.core.events import EventBus

logger = structlog.get_logger()


class AuditLogger:
    def __init__(self, log_path: Path | str) -> None:
        self._path = Path(log_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def attach(self, bus: EventBus) -> None:
        """Record retry requests, outcomes and provider failures emitted on *bus*."""
        bus.subscribe(RetryRequested, self._on_retry_requested)
        bus.subscribe(RetryCompleted, self._on_retry_completed)
        bus.subscribe(ProviderFailed, self._on_provider_failed)

    async def _on_retry_requested(self, event: RetryRequested) -> None:
        self.log_retry_requested(
            event.chat_id,
            event.provider_override,
            step_numbers=event.step_numbers,
            step_tools=event.step_tools,
        )

    async def _on_retry_completed(self, event: RetryCompleted) -> None:
        self.log_retry_completed(event.chat_id, event.success, event.error)

    async def _on_provider_failed(self, event: ProviderFailed) -> None:
        self.log_provider_failure(
            event.chat_id, event.task_type, event.provider, event.reason
        )

    def _write(self, entry: dict[str, Any]) -> None:
        entry["timestamp"] = datetime.now(UTC).isoformat()
        try:
            with open(self._path, "a") as f:
                f.write(json.dumps(entry, default=str, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error("audit_write_failed", error=str(e))

    def log_retry_requested(
        self,
        chat_id: str,
        provider_override: str | None,
        step_numbers: list[int] | None = None,
        step_tools: list[str] | None = None,
    ) -> None:
        self._write(
            {
                "event": "retry_requested",
                "chat_id": chat_id,
                "provider_override": provider_override,
                "step_numbers": step_numbers or [],
                "step_tools": step_tools or [],
            }
        )

    def log_retry_completed(
        self, chat_id: str, success: bool, error: str | None = None
    ) -> None:
        entry: dict[str, Any] = {
            "event": "retry_completed",
            "chat_id": chat_id,
            "success": success,
        }
        if error is not None:
            entry["error"] = _truncate(error)
        self._write(entry)

    def log_provider_failure(
        self, chat_id: str, task_type: str, provider: str, reason: str
    ) -> None:
        self._write(
            {
                "event": "provider_failure",
                "chat_id": chat_id,
                "task_type": task_type,
                "provider": provider,
                "reason": _truncate(reason),
            }
        )


def _truncate(value: str, limit: int = 500) -> str:
    if len(value) > limit:
        return value[:limit] + "...[truncated]"
    return value
