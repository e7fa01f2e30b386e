"""Tests for replaying stored multi-step plans."""

import pytest

from hashbot.core.models import Command, Plan, RetryArgs, Step
from hashbot.exceptions import MissingRestorableInputError, NoMatchingStepsError
from hashbot.retry.multi_step import (
    MultiStepExecutor,
    apply_modifications,
    apply_provider_override,
    stored_plan,
)


def _plan() -> Plan:
    return Plan(
        steps=[
            Step(tool="create_poll", action="poll about cats", parameters={"topic": "cats"}),
            Step(tool="create_image", action="draw a cat", parameters={"provider": "gemini"}),
            Step(tool="send_location", action="send a location in Haifa"),
        ]
    )


def _command(prompt: str = "make a poll, a cat picture and a location") -> Command:
    return Command(
        chat_id="chat-1",
        message_id="m1",
        tool="multi_step",
        is_multi_step=True,
        plan=_plan(),
        prompt=prompt,
    )


class TestStoredPlan:
    def test_prefers_plan_field(self):
        assert stored_plan(_command()) == _plan()

    def test_legacy_plan_in_tool_args(self):
        command = Command(
            chat_id="c",
            message_id="m",
            tool="multi_step",
            tool_args={"plan": _plan().model_dump()},
        )
        assert [s.tool for s in stored_plan(command).steps] == [
            "create_poll",
            "create_image",
            "send_location",
        ]

    def test_missing_plan(self):
        command = Command(chat_id="c", message_id="m", tool="multi_step")
        with pytest.raises(MissingRestorableInputError) as exc:
            stored_plan(command)
        assert exc.value.field == "plan"

    def test_invalid_legacy_plan(self):
        command = Command(
            chat_id="c", message_id="m", tool="multi_step", tool_args={"plan": {"steps": []}}
        )
        with pytest.raises(MissingRestorableInputError):
            stored_plan(command)


class TestPlanRewrites:
    def test_modifications_only_touch_first_step(self):
        plan = apply_modifications(_plan(), "with a hat")
        assert plan.steps[0].action == "poll about cats with a hat"
        assert plan.steps[1].action == "draw a cat"

    def test_no_modifications_returns_same_plan(self):
        plan = _plan()
        assert apply_modifications(plan, None) is plan

    def test_override_pins_media_steps_only(self):
        plan = apply_provider_override(_plan(), "openai")
        assert plan.steps[0].parameters == {"topic": "cats"}
        assert plan.steps[1].parameters == {"provider": "openai", "service": "openai"}
        assert plan.steps[2].parameters == {}

    def test_override_matches_unknown_media_alias(self):
        plan = Plan(steps=[Step(tool="custom_video_maker")])
        assert apply_provider_override(plan, "kling").steps[0].parameters["provider"] == "kling"


class TestMultiStepExecutor:
    @pytest.mark.asyncio
    async def test_retries_only_selected_tool(
        self, plan_executor, notifier, agent_config, mock_messenger, context
    ):
        executor = MultiStepExecutor(plan_executor, notifier, agent_config)
        args = RetryArgs(step_tools=["image"], modifications="in blue", provider_override="openai")

        result = await executor.run(_command(), args, context)

        assert result.success
        call = plan_executor.calls[0]
        steps = call["plan"].steps
        assert len(steps) == 1
        assert steps[0].tool == "create_image"
        assert steps[0].step_number == 1
        assert steps[0].action == "draw a cat in blue"
        assert steps[0].parameters == {"provider": "openai", "service": "openai"}
        assert call["chat_id"] == "chat-1"
        assert call["original_input"]["original_message_id"] == "msg-9"
        assert call["agent_config"] is agent_config
        assert mock_messenger.texts == ["🔄 Retrying image (1 steps)..."]

    @pytest.mark.asyncio
    async def test_step_numbers_ack(
        self, plan_executor, notifier, agent_config, mock_messenger, context
    ):
        executor = MultiStepExecutor(plan_executor, notifier, agent_config)
        await executor.run(_command(), RetryArgs(step_numbers=[3, 1]), context)
        assert mock_messenger.texts == ["🔄 Retrying steps 1, 3 of 3..."]
        assert [s.tool for s in plan_executor.calls[0]["plan"].steps] == [
            "create_poll",
            "send_location",
        ]

    @pytest.mark.asyncio
    async def test_all_steps_ack(
        self, plan_executor, notifier, agent_config, mock_messenger, context
    ):
        executor = MultiStepExecutor(plan_executor, notifier, agent_config)
        await executor.run(_command(), RetryArgs(), context)
        assert mock_messenger.texts == ["🔄 Retrying all steps (3 steps)..."]

    @pytest.mark.asyncio
    async def test_language_follows_original_prompt(
        self, plan_executor, notifier, agent_config, context
    ):
        executor = MultiStepExecutor(plan_executor, notifier, agent_config)
        await executor.run(_command("צור סקר ותמונה"), RetryArgs(), context)
        assert plan_executor.calls[0]["language"] == "he"

        await executor.run(_command(), RetryArgs(), context)
        assert plan_executor.calls[1]["language"] == "en"

    @pytest.mark.asyncio
    async def test_no_match_skips_executor(
        self, plan_executor, notifier, agent_config, mock_messenger, context
    ):
        executor = MultiStepExecutor(plan_executor, notifier, agent_config)
        with pytest.raises(NoMatchingStepsError):
            await executor.run(_command(), RetryArgs(step_tools=["music"]), context)
        assert plan_executor.calls == []
        assert mock_messenger.sent_messages == []
