"""Select which steps of a stored plan a retry re-executes."""

from __future__ import annotations

from collections.abc import Iterable

import structlog

from hashbot.core.models import Plan, Step
from hashbot.exceptions import NoMatchingStepsError

logger = structlog.get_logger()


def _tool_matches(tool: str | None, fragments: Iterable[str]) -> bool:
    if not tool:
        return False
    return any(frag and (frag in tool or tool in frag) for frag in fragments)


def filter_steps(
    plan: Plan,
    step_numbers: Iterable[int] | None = None,
    step_tools: Iterable[str] | None = None,
) -> Plan:
    """Return the kept steps renumbered 1..k in their original order.

    ``step_numbers`` (1-based, against the original plan) wins over
    ``step_tools``; with neither, every step is kept. Raises
    NoMatchingStepsError when the selectors match nothing.
    """
    numbers = set(step_numbers or ())
    tools = [t for t in (step_tools or ()) if t]

    if numbers:
        kept = [s for i, s in enumerate(plan.steps, start=1) if i in numbers]
    elif tools:
        kept = [s for s in plan.steps if _tool_matches(s.tool, tools)]
    else:
        kept = list(plan.steps)

    if not kept:
        logger.info(
            "retry_no_matching_steps",
            step_numbers=sorted(numbers),
            step_tools=tools,
            total_steps=len(plan.steps),
        )
        raise NoMatchingStepsError(list(plan.steps))

    renumbered = [
        step.model_copy(update={"step_number": i}) for i, step in enumerate(kept, start=1)
    ]
    return plan.model_copy(update={"steps": renumbered})


def describe_steps(steps: Iterable[Step]) -> str:
    """One ``"<n>. <tool or action>"`` line per step, numbered as listed."""
    return "\n".join(f"{i}. {step.label()}" for i, step in enumerate(steps, start=1))
