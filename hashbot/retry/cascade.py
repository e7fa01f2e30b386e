"""Provider fallback cascade.

Tries providers for one task strictly one after another, announcing each
attempt and each failure in the chat, and stops at the first success. When
every provider fails the outcome is a typed failure list that is rendered to
user text only at the tool boundary.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from hashbot.core.events import ProviderAttempted, ProviderFailed, emit_optional
from hashbot.core.messages import message
from hashbot.core.models import (
    CascadeFailure,
    CascadeResult,
    CascadeSuccess,
    ProviderFailure,
    ProviderRequest,
    ProviderResult,
    ToolResult,
)
from hashbot.core.prompts import simplify_prompt
from hashbot.core.providers import (
    ProviderOrders,
    display_provider,
    normalize_provider_key,
    resolve_task_type,
    video_display_provider,
)
from hashbot.exceptions import HashbotError, MissingRestorableInputError

if TYPE_CHECKING:
    from hashbot.agents.base import ProviderGateway
    from hashbot.core.events import EventBus
    from hashbot.core.models import ToolContext
    from hashbot.retry.ack import AckNotifier

logger = structlog.get_logger()

STRATEGY_DIFFERENT_PROVIDER = "different_provider"
STRATEGY_SIMPLIFIED_PROMPT = "simplified_prompt"

_SIMPLIFIABLE_TASKS = frozenset({"image", "video", "audio"})


class FallbackCascade:
    def __init__(
        self,
        gateway: ProviderGateway,
        notifier: AckNotifier,
        orders: ProviderOrders | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._gateway = gateway
        self._notifier = notifier
        self._orders = orders or ProviderOrders()
        self._event_bus = event_bus

    @property
    def orders(self) -> ProviderOrders:
        return self._orders

    def candidates(
        self,
        task_type: str,
        *,
        tried: list[str] | None = None,
        avoid_provider: str | None = None,
        requested_provider: str | None = None,
    ) -> list[str]:
        """Providers to attempt, in order.

        A requested provider pins the cascade to that one provider. Otherwise
        the order resumes after the last tried provider and drops the avoided
        one. Editing only ever uses edit-capable providers.
        """
        task = resolve_task_type(task_type)
        pinned = normalize_provider_key(requested_provider)
        if pinned and (task != "image_edit" or pinned in self._orders.edit_capable):
            return [pinned]
        if pinned:
            logger.warning("cascade_pinned_provider_cannot_edit", provider=pinned)

        tried_keys = [k for k in (normalize_provider_key(p) for p in tried or []) if k]
        avoid = normalize_provider_key(avoid_provider)
        providers = [
            p for p in self._orders.candidates(task, tried_keys) if p != avoid
        ]
        if task == "image_edit":
            providers = [p for p in providers if p in self._orders.edit_capable]
        return providers

    async def run(
        self,
        task_type: str,
        prompt: str,
        context: ToolContext,
        *,
        tried: list[str] | None = None,
        avoid_provider: str | None = None,
        requested_provider: str | None = None,
        image_url: str | None = None,
        simplify: bool = True,
    ) -> CascadeResult:
        """Try each candidate provider once, then optionally a simplified prompt.

        The simplified prompt goes to the first provider this run attempted, never
        to one the candidate filters excluded. Pinned runs and edits skip it.
        """
        task = resolve_task_type(task_type)
        if task == "image_edit" and not image_url:
            raise MissingRestorableInputError("image_url")

        providers = self.candidates(
            task,
            tried=tried,
            avoid_provider=avoid_provider,
            requested_provider=requested_provider,
        )
        logger.info(
            "cascade_started",
            chat_id=context.chat_id,
            task_type=task,
            providers=providers,
        )

        failures: list[ProviderFailure] = []
        for provider in providers:
            await self._notifier.fallback_ack(context, task, provider)
            outcome = await self._attempt(context, task, provider, prompt, image_url)
            if isinstance(outcome, ProviderResult):
                return CascadeSuccess(
                    task_type=task,
                    provider=provider,
                    strategy=STRATEGY_DIFFERENT_PROVIDER,
                    payload=outcome,
                    prompt=prompt,
                    failures=failures,
                )
            failures.append(outcome)

        if simplify and providers and not requested_provider and task in _SIMPLIFIABLE_TASKS:
            simplified = simplify_prompt(prompt)
            if simplified != prompt:
                provider = providers[0]
                await self._notifier.simplify_ack(context)
                outcome = await self._attempt(context, task, provider, simplified, image_url)
                if isinstance(outcome, ProviderResult):
                    return CascadeSuccess(
                        task_type=task,
                        provider=provider,
                        strategy=STRATEGY_SIMPLIFIED_PROMPT,
                        payload=outcome,
                        prompt=simplified,
                        failures=failures,
                    )
                failures.append(outcome)

        logger.warning(
            "cascade_exhausted",
            chat_id=context.chat_id,
            task_type=task,
            failures=[f.provider for f in failures],
        )
        return CascadeFailure(
            task_type=task,
            failures=failures,
            requested_provider=normalize_provider_key(requested_provider),
        )

    async def _attempt(
        self,
        context: ToolContext,
        task_type: str,
        provider: str,
        prompt: str,
        image_url: str | None,
    ) -> ProviderResult | ProviderFailure:
        await emit_optional(
            self._event_bus,
            ProviderAttempted(
                chat_id=context.chat_id, task_type=task_type, provider=provider
            ),
        )
        request = ProviderRequest(
            task_type=task_type, provider=provider, prompt=prompt, image_url=image_url
        )
        try:
            result = await self._gateway.generate(request)
        except Exception as e:
            logger.warning(
                "provider_call_raised",
                provider=provider,
                task_type=task_type,
                error=str(e),
            )
            reason = str(e) or type(e).__name__
        else:
            if not result.error and (result.url or result.text_only):
                logger.info(
                    "provider_succeeded", provider=provider, task_type=task_type
                )
                return result
            reason = result.error or message(
                "unknown_reason", self._notifier.language_for(context)
            )
            logger.warning(
                "provider_failed", provider=provider, task_type=task_type, error=reason
            )

        await self._notifier.fallback_error(context, task_type, provider, reason)
        await emit_optional(
            self._event_bus,
            ProviderFailed(
                chat_id=context.chat_id,
                task_type=task_type,
                provider=provider,
                reason=reason,
            ),
        )
        return ProviderFailure(provider=provider, reason=reason)

    async def execute(
        self,
        task_type: str,
        prompt: str,
        context: ToolContext,
        *,
        tried: list[str] | None = None,
        avoid_provider: str | None = None,
        requested_provider: str | None = None,
        image_url: str | None = None,
        simplify: bool = True,
    ) -> ToolResult:
        """Run the cascade and render the outcome as a tool result."""
        language = self._notifier.language_for(context)
        try:
            outcome = await self.run(
                task_type,
                prompt,
                context,
                tried=tried,
                avoid_provider=avoid_provider,
                requested_provider=requested_provider,
                image_url=image_url,
                simplify=simplify,
            )
        except MissingRestorableInputError:
            return ToolResult(success=False, error=message("missing_edit_image", language))
        except (HashbotError, ValueError) as e:
            return ToolResult(success=False, error=message("retry_failed", language, reason=e))
        except Exception as e:
            logger.exception("cascade_error", chat_id=context.chat_id, task_type=task_type)
            return ToolResult(success=False, error=message("retry_failed", language, reason=e))

        if isinstance(outcome, CascadeFailure):
            return ToolResult(success=False, error=render_failure(outcome, language))
        return render_success(outcome, language)


def render_success(success: CascadeSuccess, language: str | None = None) -> ToolResult:
    payload = success.payload
    provider = success.provider
    if success.task_type == "video":
        provider = video_display_provider(provider)

    if payload.text_only:
        data = payload.text or payload.description or ""
    elif success.strategy == STRATEGY_SIMPLIFIED_PROMPT:
        data = message("fallback_success_simplified", language)
    else:
        data = message(
            "fallback_success",
            language,
            provider=display_provider(success.task_type, success.provider),
        )

    media: dict[str, str | None] = {}
    if payload.url:
        key = {"video": "video_url", "audio": "audio_url"}.get(success.task_type, "image_url")
        media[key] = payload.url

    return ToolResult(
        success=True,
        data=data,
        caption=payload.description,
        provider=provider,
        strategy_used=success.strategy,
        **media,
    )


def render_failure(failure: CascadeFailure, language: str | None = None) -> str:
    """Aggregate every provider failure into one message with a task hint."""
    task = failure.task_type
    if failure.requested_provider and len(failure.failures) == 1:
        only = failure.failures[0]
        return message(
            "provider_error",
            language,
            provider=display_provider(task, only.provider),
            reason=only.reason,
        )

    error_key = "fallback_error_image_edit" if task == "image_edit" else "fallback_error"
    if failure.failures:
        details = "\n".join(
            message(
                error_key,
                language,
                provider=display_provider(task, f.provider),
                reason=f.reason,
            )
            for f in failure.failures
        )
    else:
        details = message("no_failure_details", language)

    summary_key = "all_failed_image_edit" if task == "image_edit" else "all_failed"
    text = message(summary_key, language, details=details)
    return f"{text}\n\n{message(f'hint_{task}', language)}"


FALLBACK_TOOL_DECLARATION = {
    "name": "retry_with_different_provider",
    "description": (
        "Create or edit an image or video again with another provider after "
        "the first attempt failed. Never call this before a first attempt."
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "original_prompt": {
                "type": "string",
                "description": "The prompt of the failed creation or edit",
            },
            "task_type": {
                "type": "string",
                "enum": ["image", "image_edit", "video", "audio"],
            },
            "avoid_provider": {
                "type": "string",
                "description": "Provider that must not be tried again",
            },
            "providers_tried": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Providers already tried, in order",
            },
            "image_url": {
                "type": "string",
                "description": "Source image URL (image_edit only)",
            },
        },
        "required": ["original_prompt"],
    },
}


class ProviderFallbackTool:
    """Exposes the cascade to the agent as an invocable tool.

    Only swaps providers; the prompt is passed through unchanged.
    """

    declaration = FALLBACK_TOOL_DECLARATION

    def __init__(self, cascade: FallbackCascade) -> None:
        self._cascade = cascade

    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        return await self._cascade.execute(
            args.get("task_type") or "image",
            args.get("original_prompt") or "",
            context,
            tried=args.get("providers_tried"),
            avoid_provider=args.get("avoid_provider"),
            image_url=args.get("image_url"),
            simplify=False,
        )
