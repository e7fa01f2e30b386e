"""Sequential plan executor over the tool registry.

Steps run strictly in order so later steps can use the artifacts of earlier
ones. Each step is acknowledged before it runs; a failing step is reported in
the chat and the remaining steps still run.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from hashbot.core.messages import message
from hashbot.core.models import ToolContext, ToolResult

if TYPE_CHECKING:
    from hashbot.agents.base import ToolRegistry
    from hashbot.core.config import AgentConfig
    from hashbot.core.models import Plan, Step
    from hashbot.retry.ack import AckNotifier

logger = structlog.get_logger()

MULTI_STEP_MIN_TIMEOUT_MS = 6 * 60 * 1000
MULTI_STEP_MIN_ITERATIONS = 15

# Tools that take the previous step's image as input.
_IMAGE_INPUT_TOOLS = frozenset({"edit_image", "image_to_video"})


def _previous_context(results: list[ToolResult]) -> str:
    lines = []
    for i, res in enumerate(results, start=1):
        summary = f"Step {i}:"
        if res.data:
            summary += f" {res.data[:200]}"
        if res.image_url:
            summary += " [Created image]"
        if res.video_url:
            summary += " [Created video]"
        if res.audio_url:
            summary += " [Created audio]"
        lines.append(summary)
    return "\n".join(lines)


def build_step_args(step: Step, previous: list[ToolResult]) -> dict[str, Any]:
    args: dict[str, Any] = dict(step.parameters)
    instruction = step.action
    if previous:
        instruction = (
            f"CONTEXT from previous steps:\n{_previous_context(previous)}\n\n"
            f"CURRENT TASK: {step.action}"
        )
    args.setdefault("instruction", instruction)
    if step.action:
        args.setdefault("prompt", step.action)
    if step.tool in _IMAGE_INPUT_TOOLS and "image_url" not in args:
        last_image = next((r.image_url for r in reversed(previous) if r.image_url), None)
        if last_image:
            args["image_url"] = last_image
    return args


class SequentialPlanExecutor:
    def __init__(self, tools: ToolRegistry, notifier: AckNotifier) -> None:
        self._tools = tools
        self._notifier = notifier

    async def execute(
        self,
        plan: Plan,
        chat_id: str,
        *,
        original_input: dict[str, Any],
        language: str,
        agent_config: AgentConfig,
    ) -> ToolResult:
        timeout_ms = max(agent_config.timeout_ms, MULTI_STEP_MIN_TIMEOUT_MS)
        max_steps = max(agent_config.max_iterations, MULTI_STEP_MIN_ITERATIONS)
        context = ToolContext(
            chat_id=chat_id,
            original_message_id=original_input.get("original_message_id"),
            language=language,
            original_input=original_input,
        )
        logger.info("plan_execution_started", chat_id=chat_id, steps=len(plan.steps))

        completed: list[ToolResult] = []
        diagnostics: list[dict[str, Any]] = []
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                for index, step in enumerate(plan.steps[:max_steps], start=1):
                    number = step.step_number or index
                    outcome = await self._run_step(context, step, number, completed)
                    diagnostics.append(outcome)
        except TimeoutError:
            logger.error("plan_execution_timeout", chat_id=chat_id, timeout_ms=timeout_ms)
            diagnostics.append({"step": None, "success": False, "error": "timeout"})

        if len(plan.steps) > max_steps:
            logger.warning(
                "plan_truncated", chat_id=chat_id, steps=len(plan.steps), max_steps=max_steps
            )

        logger.info(
            "plan_execution_completed",
            chat_id=chat_id,
            completed=len(completed),
            total=len(plan.steps),
        )
        errors = [d["error"] for d in diagnostics if d.get("error")]
        return ToolResult(
            success=bool(completed),
            data="\n\n".join(r.data for r in completed if r.data) or None,
            error=None if completed else "\n".join(errors) or None,
            image_url=next((r.image_url for r in reversed(completed) if r.image_url), None),
            video_url=next((r.video_url for r in reversed(completed) if r.video_url), None),
            audio_url=next((r.audio_url for r in reversed(completed) if r.audio_url), None),
            multi_step=True,
            plan=plan.model_dump(),
            steps=diagnostics,
            steps_completed=len(completed),
            total_steps=len(plan.steps),
        )

    async def _run_step(
        self,
        context: ToolContext,
        step: Step,
        number: int,
        completed: list[ToolResult],
    ) -> dict[str, Any]:
        language = context.language
        if not step.tool:
            reason = message("step_no_tool", language)
            await self._notifier.send(
                context, message("step_failed", language, step=number, reason=reason)
            )
            return {"step": number, "tool": None, "success": False, "error": reason}

        tool = self._tools.get(step.tool)
        if tool is None:
            reason = message("tool_unavailable", language, tool=step.tool)
            await self._notifier.send(
                context, message("step_failed", language, step=number, reason=reason)
            )
            return {"step": number, "tool": step.tool, "success": False, "error": reason}

        args = build_step_args(step, completed)
        await self._notifier.tool_ack(context, step.tool, args.get("provider"))
        try:
            result = await tool.execute(args, context)
        except Exception as e:
            logger.exception("plan_step_error", step=number, tool=step.tool)
            await self._notifier.send(
                context, message("step_failed", language, step=number, reason=e)
            )
            return {"step": number, "tool": step.tool, "success": False, "error": str(e)}

        if not result.success:
            reason = result.error or message("unknown_reason", language)
            logger.warning("plan_step_failed", step=number, tool=step.tool, error=reason)
            await self._notifier.send(
                context, message("step_failed", language, step=number, reason=reason)
            )
            return {"step": number, "tool": step.tool, "success": False, "error": reason}

        completed.append(result)
        logger.info("plan_step_completed", step=number, tool=step.tool)
        return {"step": number, "tool": step.tool, "success": True, "error": None}
