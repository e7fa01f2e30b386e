"""Last-command store used by the retry engine.

Every finished tool run (successful or not) is recorded per chat; the most
recent record is what a retry replays. Persistence problems are logged and
swallowed so the bot keeps answering even when retry is unavailable.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from hashbot.core.events import CommandSaved, emit_optional
from hashbot.core.models import Command, CommandMetadata, Plan
from hashbot.core.tools import MULTI_STEP_TOOL, NON_PERSISTED_TOOLS

if TYPE_CHECKING:
    from hashbot.core.events import EventBus
    from hashbot.storage.base import CommandPersistence

logger = structlog.get_logger()

DEFAULT_TTL = timedelta(days=30)

_RESULT_KEYS = (
    "success",
    "data",
    "error",
    "image_url",
    "image_caption",
    "video_url",
    "audio_url",
    "translation",
    "translated_text",
    "provider",
    "service",
    "strategy_used",
    "poll",
    "latitude",
    "longitude",
    "location_info",
    "text",
    "prompt",
    "original_text",
    "target_language",
)


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: str
    args: dict[str, Any] = Field(default_factory=dict)
    success: bool = True


class AgentRunResult(BaseModel):
    """What the upstream agent reports after handling one user message."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    multi_step: bool = False
    plan: Plan | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: dict[str, dict[str, Any]] = Field(default_factory=dict)
    image_url: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    original_message_id: str | None = None


def sanitize_tool_result(result: dict[str, Any]) -> dict[str, Any]:
    """Keep only the small, replay-relevant fields of a tool result."""
    return {k: result[k] for k in _RESULT_KEYS if result.get(k) is not None}


class CommandStore:
    def __init__(
        self,
        persistence: CommandPersistence | None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._persistence = persistence
        self._event_bus = event_bus

    async def save(
        self, chat_id: str, message_id: str, metadata: CommandMetadata
    ) -> None:
        if not chat_id or not message_id:
            return
        if self._persistence is None:
            logger.warning("command_store_unavailable", action="save")
            return
        command = Command(chat_id=chat_id, message_id=message_id, **dict(metadata))
        try:
            await self._persistence.save(command)
        except Exception as e:
            logger.error(
                "command_save_failed",
                chat_id=chat_id,
                message_id=message_id,
                error=str(e),
            )
            return
        logger.debug(
            "command_saved",
            chat_id=chat_id,
            message_id=message_id,
            tool=metadata.tool,
        )
        await emit_optional(
            self._event_bus,
            CommandSaved(
                chat_id=chat_id,
                message_id=message_id,
                tool=metadata.tool,
                failed=metadata.failed,
            ),
        )

    async def get_last(self, chat_id: str) -> Command | None:
        if not chat_id:
            return None
        if self._persistence is None:
            logger.warning("command_store_unavailable", action="get_last")
            return None
        try:
            return await self._persistence.get_last(chat_id)
        except Exception as e:
            logger.error("command_load_failed", chat_id=chat_id, error=str(e))
            return None

    async def cleanup(self, ttl: timedelta = DEFAULT_TTL) -> int:
        if self._persistence is None:
            return 0
        cutoff = datetime.now(UTC) - ttl
        try:
            deleted = await self._persistence.delete_older_than(cutoff)
        except Exception as e:
            logger.error("command_cleanup_failed", error=str(e))
            return 0
        if deleted:
            logger.info("commands_expired", count=deleted, ttl_seconds=ttl.total_seconds())
        return deleted

    async def clear_all(self) -> None:
        if self._persistence is None:
            return
        try:
            await self._persistence.delete_all()
        except Exception as e:
            logger.error("command_clear_failed", error=str(e))
            return
        logger.info("commands_cleared")

    async def save_from_agent_result(
        self,
        chat_id: str,
        user_text: str,
        result: AgentRunResult,
        *,
        message_id: str | None = None,
    ) -> None:
        """Record the replayable part of an agent run as the chat's last command."""
        message_id = message_id or result.original_message_id
        if not message_id:
            logger.warning("command_not_saved_no_message_id", chat_id=chat_id)
            return

        if result.multi_step and result.plan is not None:
            await self.save(
                chat_id,
                message_id,
                CommandMetadata(
                    tool=MULTI_STEP_TOOL,
                    is_multi_step=True,
                    plan=result.plan,
                    prompt=user_text,
                    failed=not result.success,
                    image_url=result.image_url,
                    video_url=result.video_url,
                    audio_url=result.audio_url,
                ),
            )
            logger.info(
                "multi_step_command_saved",
                chat_id=chat_id,
                steps=[s.label() for s in result.plan.steps],
            )
            return

        call = next(
            (c for c in reversed(result.tool_calls) if c.tool not in NON_PERSISTED_TOOLS),
            None,
        )
        if call is None:
            logger.debug("command_not_saved_no_eligible_call", chat_id=chat_id)
            return

        raw = result.tool_results.get(call.tool)
        sanitized = sanitize_tool_result(raw) if raw else None
        stored = sanitized or {}
        await self.save(
            chat_id,
            message_id,
            CommandMetadata(
                tool=call.tool,
                tool_args=call.args,
                result=sanitized,
                prompt=user_text,
                failed=not call.success,
                image_url=stored.get("image_url") or result.image_url,
                video_url=stored.get("video_url") or result.video_url,
                audio_url=stored.get("audio_url") or result.audio_url,
            ),
        )


class CommandJanitor:
    """Background task that expires old commands on a fixed interval."""

    def __init__(
        self,
        store: CommandStore,
        *,
        ttl: timedelta = DEFAULT_TTL,
        interval_seconds: float = 24 * 3600,
    ) -> None:
        self._store = store
        self._ttl = ttl
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info("command_janitor_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("command_janitor_stopped")

    async def _loop(self) -> None:
        while True:
            await self._store.cleanup(self._ttl)
            await asyncio.sleep(self._interval)
