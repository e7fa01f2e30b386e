"""Replay of a stored multi-step plan, optionally filtered to some steps."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from hashbot.core.messages import detect_language
from hashbot.core.models import Plan
from hashbot.core.prompts import append_modifications
from hashbot.core.tools import is_media_tool
from hashbot.exceptions import MissingRestorableInputError
from hashbot.retry.step_filter import filter_steps

if TYPE_CHECKING:
    from hashbot.agents.base import PlanExecutor
    from hashbot.core.config import AgentConfig
    from hashbot.core.models import Command, RetryArgs, ToolContext, ToolResult
    from hashbot.retry.ack import AckNotifier

logger = structlog.get_logger()


def stored_plan(command: Command) -> Plan:
    """The plan saved with a multi-step command.

    Older records kept the plan inside the tool args.
    """
    if command.plan is not None:
        return command.plan
    raw = command.tool_args.get("plan")
    if raw:
        try:
            return Plan.model_validate(raw)
        except ValidationError:
            logger.warning("stored_plan_invalid", chat_id=command.chat_id)
    raise MissingRestorableInputError("plan")


def apply_modifications(plan: Plan, modifications: str | None) -> Plan:
    """Append *modifications* to the first step's action only."""
    if not modifications:
        return plan
    first, *rest = plan.steps
    first = first.model_copy(
        update={"action": append_modifications(first.action, modifications)}
    )
    return plan.model_copy(update={"steps": [first, *rest]})


def apply_provider_override(plan: Plan, provider: str | None) -> Plan:
    """Pin media steps to *provider* via both ``provider`` and ``service``."""
    if not provider:
        return plan
    steps = []
    for step in plan.steps:
        if is_media_tool(step.tool):
            parameters = {**step.parameters, "provider": provider, "service": provider}
            step = step.model_copy(update={"parameters": parameters})
            logger.debug(
                "multi_step_provider_overridden",
                step=step.step_number,
                tool=step.tool,
                provider=provider,
            )
        steps.append(step)
    return plan.model_copy(update={"steps": steps})


class MultiStepExecutor:
    def __init__(
        self,
        plan_executor: PlanExecutor,
        notifier: AckNotifier,
        agent_config: AgentConfig,
    ) -> None:
        self._plan_executor = plan_executor
        self._notifier = notifier
        self._agent_config = agent_config

    async def run(
        self, command: Command, args: RetryArgs, context: ToolContext
    ) -> ToolResult:
        original = stored_plan(command)
        plan = filter_steps(original, args.step_numbers, args.step_tools)
        plan = apply_modifications(plan, args.modifications)
        plan = apply_provider_override(plan, args.provider_override)

        logger.info(
            "multi_step_retry",
            chat_id=context.chat_id,
            retried_steps=len(plan.steps),
            total_steps=len(original.steps),
            provider_override=args.provider_override,
        )

        await self._notifier.multi_step_ack(context, plan, args, len(original.steps))

        prompt = command.prompt or command.tool_args.get("prompt") or ""
        original_input = {
            **context.original_input,
            "original_message_id": context.original_message_id,
        }
        return await self._plan_executor.execute(
            plan,
            context.chat_id,
            original_input=original_input,
            language=detect_language(prompt),
            agent_config=self._agent_config,
        )
