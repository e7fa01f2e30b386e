"""Replay of a stored single-tool command."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from hashbot.core.messages import message
from hashbot.core.models import ProviderRequest, ToolResult
from hashbot.core.prompts import append_modifications
from hashbot.core.tools import ToolCategory, parse_tool
from hashbot.exceptions import MissingRestorableInputError
from hashbot.retry.provider_selector import resolve_provider

if TYPE_CHECKING:
    from hashbot.agents.base import ProviderGateway, ToolRegistry
    from hashbot.core.models import Command, RetryArgs, ToolContext
    from hashbot.retry.ack import AckNotifier

logger = structlog.get_logger()


def _first(*values: Any) -> str:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def modified_prompt(command: Command, modifications: str | None) -> str:
    """Original instruction of the command with the user's changes appended."""
    args = command.tool_args
    result = command.result or {}
    base = _first(
        args.get("prompt"),
        args.get("text"),
        result.get("translation"),
        result.get("translated_text"),
        result.get("translatedText"),
    )
    return append_modifications(base, modifications)


class SingleStepRetry:
    def __init__(
        self,
        tools: ToolRegistry,
        notifier: AckNotifier,
        gateway: ProviderGateway | None = None,
    ) -> None:
        self._tools = tools
        self._notifier = notifier
        self._gateway = gateway

    async def run(
        self, command: Command, args: RetryArgs, context: ToolContext
    ) -> ToolResult:
        spec = parse_tool(command.tool)
        choice = resolve_provider(command, spec, args.provider_override)
        provider = choice.provider
        prompt = modified_prompt(command, args.modifications)
        stored = command.tool_args
        result = command.result or {}
        language = self._notifier.language_for(context)

        logger.info(
            "single_step_retry",
            chat_id=context.chat_id,
            tool=spec.name,
            category=spec.category.value,
            provider=provider,
            provider_source=choice.source,
        )

        match spec.category:
            case ToolCategory.IMAGE:
                prompt = prompt or _first(stored.get("prompt"), result.get("prompt"))
                if not prompt:
                    raise MissingRestorableInputError("prompt")
                return await self._dispatch(
                    context, spec.name, "create_image", provider,
                    {"prompt": prompt, "provider": provider or "gemini"},
                )
            case ToolCategory.VIDEO if spec.canonical == "create_video":
                prompt = prompt or _first(stored.get("prompt"), result.get("prompt"))
                if not prompt:
                    raise MissingRestorableInputError("video_prompt")
                return await self._dispatch(
                    context, spec.name, "create_video", provider,
                    {"prompt": prompt, "provider": provider or "kling"},
                )
            case ToolCategory.EDIT if spec.canonical == "edit_image":
                instruction = prompt or _first(
                    stored.get("edit_instruction"), stored.get("prompt")
                )
                image_url = _first(
                    stored.get("image_url"), result.get("image_url"), command.image_url
                )
                if not instruction or not image_url:
                    raise MissingRestorableInputError("edit")
                service = provider or _first(stored.get("service")) or "openai"
                return await self._dispatch(
                    context, spec.name, "edit_image", provider,
                    {
                        "image_url": image_url,
                        "edit_instruction": instruction,
                        "service": service,
                    },
                )
            case ToolCategory.CHAT:
                return await self._chat(context, spec.name, provider or "gemini", prompt)
            case ToolCategory.SPEECH:
                text = prompt or _first(stored.get("text"))
                if not text:
                    raise MissingRestorableInputError("tts_text")
                return await self._dispatch(
                    context, spec.name, "text_to_speech", provider,
                    {
                        "text": text,
                        "target_language": _first(
                            stored.get("target_language"), stored.get("language")
                        ) or "he",
                    },
                )
            case ToolCategory.MUSIC:
                music_prompt = prompt or _first(
                    stored.get("prompt"), result.get("prompt"), stored.get("text")
                )
                if not music_prompt:
                    raise MissingRestorableInputError("music_prompt")
                return await self._dispatch(
                    context, spec.name, "create_music", provider, {"prompt": music_prompt}
                )
            case ToolCategory.TRANSLATION:
                # Translations replay the original text; modifications do not apply.
                text = _first(
                    stored.get("text"), result.get("original_text"), stored.get("prompt")
                )
                if not text:
                    raise MissingRestorableInputError("translation")
                target = _first(
                    stored.get("target_language"),
                    stored.get("language"),
                    result.get("target_language"),
                ) or "he"
                return await self._dispatch(
                    context, spec.name, "translate_text", provider,
                    {"text": text, "target_language": target},
                )
            case ToolCategory.POLL:
                topic = prompt or _first(stored.get("topic"), stored.get("prompt"))
                if not topic:
                    raise MissingRestorableInputError("poll_topic")
                return await self._dispatch(
                    context, spec.name, "create_poll", provider, {"topic": topic}
                )
            case _:
                logger.info("single_step_retry_unsupported", tool=spec.name)
                return ToolResult(
                    success=True,
                    data=message("cannot_auto_retry", language, tool=spec.name),
                    last_tool=spec.name,
                    last_args=dict(stored),
                )

    async def _dispatch(
        self,
        context: ToolContext,
        original_tool: str,
        tool_name: str,
        provider: str | None,
        tool_args: dict[str, Any],
    ) -> ToolResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            logger.warning("retry_tool_unavailable", tool=tool_name)
            return ToolResult(
                success=False,
                error=message(
                    "tool_unavailable", self._notifier.language_for(context), tool=tool_name
                ),
            )
        await self._notifier.tool_ack(context, original_tool, provider)
        return await tool.execute(tool_args, context)

    async def _chat(
        self, context: ToolContext, tool_name: str, provider: str, prompt: str
    ) -> ToolResult:
        if not prompt:
            raise MissingRestorableInputError("prompt")
        if self._gateway is None:
            return ToolResult(
                success=False,
                error=message(
                    "tool_unavailable", self._notifier.language_for(context), tool=tool_name
                ),
            )
        await self._notifier.tool_ack(context, tool_name, provider)
        reply = await self._gateway.generate(
            ProviderRequest(task_type="chat", provider=provider, prompt=prompt)
        )
        if reply.error:
            return ToolResult(success=False, data=reply.error, error=reply.error)
        return ToolResult(success=True, data=reply.text or "", provider=provider)
