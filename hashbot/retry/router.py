"""``retry_last_command`` tool: loads the chat's last command and replays it."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from hashbot.core.events import RetryCompleted, RetryRequested, emit_optional
from hashbot.core.messages import message
from hashbot.core.models import RetryArgs, ToolResult
from hashbot.core.providers import RETRY_PROVIDERS
from hashbot.exceptions import (
    HashbotError,
    MissingRestorableInputError,
    NoMatchingStepsError,
    NoPriorCommandError,
)
from hashbot.retry.multi_step import MultiStepExecutor
from hashbot.retry.single_step import SingleStepRetry
from hashbot.retry.step_filter import describe_steps

if TYPE_CHECKING:
    from hashbot.agents.base import PlanExecutor, ProviderGateway, ToolRegistry
    from hashbot.core.commands import CommandStore
    from hashbot.core.config import AgentConfig
    from hashbot.core.events import EventBus
    from hashbot.core.models import ToolContext
    from hashbot.retry.ack import AckNotifier

logger = structlog.get_logger()

RETRY_TOOL_DECLARATION: dict[str, Any] = {
    "name": "retry_last_command",
    "description": (
        'Retry the last command. Use ONLY when the user explicitly asks to "retry", '
        '"try again", "fix it", or names specific step numbers.'
    ),
    "parameters": {
        "type": "object",
        "properties": {
            "provider_override": {
                "type": "string",
                "enum": list(RETRY_PROVIDERS),
                "description": "Alternative provider to use (optional)",
            },
            "modifications": {
                "type": "string",
                "description": 'Extra instructions for the retry (e.g. "with long hair")',
            },
            "step_numbers": {
                "type": "array",
                "items": {"type": "number"},
                "description": "1-based step numbers to retry. Omit for all steps.",
            },
            "step_tools": {
                "type": "array",
                "items": {"type": "string"},
                "description": 'Tool names of the steps to retry (e.g. ["send_location"])',
            },
        },
        "required": [],
    },
}


class RetryRouter:
    declaration = RETRY_TOOL_DECLARATION

    def __init__(
        self,
        store: CommandStore,
        tools: ToolRegistry,
        plan_executor: PlanExecutor,
        notifier: AckNotifier,
        agent_config: AgentConfig,
        *,
        gateway: ProviderGateway | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._event_bus = event_bus
        self._single = SingleStepRetry(tools, notifier, gateway)
        self._multi = MultiStepExecutor(plan_executor, notifier, agent_config)

    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        """Tool entry point. Never raises; failures come back as results."""
        language = self._notifier.language_for(context)
        try:
            retry_args = RetryArgs.model_validate(args or {})
        except ValidationError as e:
            reason = "; ".join(err["msg"] for err in e.errors())
            logger.warning("retry_args_invalid", chat_id=context.chat_id, error=reason)
            return ToolResult(
                success=False, error=message("invalid_retry_args", language, reason=reason)
            )
        return await self.retry_last_command(retry_args, context)

    async def retry_last_command(
        self, args: RetryArgs, context: ToolContext
    ) -> ToolResult:
        language = self._notifier.language_for(context)
        if not context.chat_id:
            return ToolResult(success=False, error=message("no_chat_id", language))

        await emit_optional(
            self._event_bus,
            RetryRequested(
                chat_id=context.chat_id,
                provider_override=args.provider_override,
                step_numbers=args.step_numbers,
                step_tools=args.step_tools,
            ),
        )

        result = await self._route(args, context, language)

        await emit_optional(
            self._event_bus,
            RetryCompleted(
                chat_id=context.chat_id, success=result.success, error=result.error
            ),
        )
        return result

    async def _route(
        self, args: RetryArgs, context: ToolContext, language: str
    ) -> ToolResult:
        try:
            command = await self._store.get_last(context.chat_id)
            if command is None:
                raise NoPriorCommandError(context.chat_id)

            logger.info(
                "retry_routed",
                chat_id=context.chat_id,
                tool=command.tool,
                multi_step=command.is_multi,
            )
            if command.is_multi:
                return await self._multi.run(command, args, context)
            return await self._single.run(command, args, context)

        except NoPriorCommandError:
            logger.info("retry_no_previous_command", chat_id=context.chat_id)
            return ToolResult(success=False, error=message("no_previous_command", language))
        except NoMatchingStepsError as e:
            return ToolResult(
                success=False,
                error=message("no_matching_steps", language, steps=describe_steps(e.steps)),
            )
        except MissingRestorableInputError as e:
            logger.warning(
                "retry_input_not_restorable", chat_id=context.chat_id, field=e.field
            )
            return ToolResult(success=False, error=message(f"restore_{e.field}", language))
        except HashbotError as e:
            logger.error("retry_failed", chat_id=context.chat_id, error=str(e))
            return ToolResult(success=False, error=message("retry_failed", language, reason=e))
        except Exception as e:
            logger.exception("retry_error", chat_id=context.chat_id)
            return ToolResult(success=False, error=message("retry_failed", language, reason=e))
