"""Best-effort progress messages sent around retries and provider attempts."""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from hashbot.core.messages import message, step_tool_label, tool_ack
from hashbot.core.providers import display_provider, format_provider_name
from hashbot.core.tools import ToolCategory, parse_tool

if TYPE_CHECKING:
    from hashbot.connectors.base import BaseConnector
    from hashbot.core.models import Plan, RetryArgs, ToolContext

logger = structlog.get_logger()

_NO_ACK_TOOLS = frozenset({"send_location"})

_FALLBACK_ACK_KEYS = {
    "image": "fallback_ack_image",
    "video": "fallback_ack_video",
    "image_edit": "fallback_ack_image_edit",
}


class AckNotifier:
    def __init__(
        self,
        messenger: BaseConnector | None,
        *,
        language: str = "he",
        typing_delay_ms: int | None = 1000,
    ) -> None:
        self._messenger = messenger
        self._language = language
        self._typing_delay_ms = typing_delay_ms

    def language_for(self, context: ToolContext) -> str:
        return context.language or self._language

    async def send(self, context: ToolContext, text: str) -> bool:
        """Send *text* to the chat. Failures are logged, never raised."""
        if self._messenger is None or not context.chat_id:
            return False
        try:
            await self._messenger.send_message(
                context.chat_id,
                text,
                quoted_message_id=context.original_message_id,
                typing_delay_ms=self._typing_delay_ms,
            )
        except Exception:
            logger.exception("ack_send_failed", chat_id=context.chat_id)
            return False
        return True

    async def tool_ack(
        self, context: ToolContext, tool: str, provider: str | None = None
    ) -> bool:
        if tool in _NO_ACK_TOOLS:
            return False
        spec = parse_tool(tool)
        if provider and spec.category is ToolCategory.VIDEO:
            name = display_provider("video", provider)
        else:
            name = format_provider_name(provider)
        text = tool_ack(spec.canonical, name, self.language_for(context))
        logger.debug("ack_tool", chat_id=context.chat_id, tool=tool, provider=provider)
        return await self.send(context, text)

    async def multi_step_ack(
        self, context: ToolContext, plan: Plan, args: RetryArgs, total_steps: int
    ) -> bool:
        language = self.language_for(context)
        if args.step_numbers:
            numbers = sorted(n for n in set(args.step_numbers) if 1 <= n <= total_steps)
            text = message(
                "retry_steps_numbers",
                language,
                steps=", ".join(str(n) for n in numbers),
                total=total_steps,
            )
        elif args.step_tools:
            labels = _unique(
                step_tool_label(s.tool, language) for s in plan.steps if s.tool
            )
            text = message(
                "retry_steps_tools",
                language,
                tools=", ".join(labels),
                count=len(plan.steps),
            )
        else:
            text = message("retry_steps_all", language, count=len(plan.steps))
        return await self.send(context, text)

    async def fallback_ack(
        self, context: ToolContext, task_type: str, provider: str
    ) -> bool:
        key = _FALLBACK_ACK_KEYS.get(task_type, "fallback_ack")
        text = message(
            key,
            self.language_for(context),
            provider=display_provider(task_type, provider),
        )
        return await self.send(context, text)

    async def fallback_error(
        self, context: ToolContext, task_type: str, provider: str, reason: str
    ) -> bool:
        key = "fallback_error_image_edit" if task_type == "image_edit" else "fallback_error"
        text = message(
            key,
            self.language_for(context),
            provider=display_provider(task_type, provider),
            reason=reason,
        )
        return await self.send(context, text)

    async def simplify_ack(self, context: ToolContext) -> bool:
        return await self.send(
            context, message("fallback_ack_simplify", self.language_for(context))
        )


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
