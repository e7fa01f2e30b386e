"""Collaborator protocols: invocable tools, the plan executor and provider calls."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hashbot.core.config import AgentConfig
    from hashbot.core.models import (
        Plan,
        ProviderRequest,
        ProviderResult,
        ToolContext,
        ToolResult,
    )


@runtime_checkable
class AgentTool(Protocol):
    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        ...


ToolRegistry = Mapping[str, AgentTool]


@runtime_checkable
class PlanExecutor(Protocol):
    async def execute(
        self,
        plan: Plan,
        chat_id: str,
        *,
        original_input: dict[str, Any],
        language: str,
        agent_config: AgentConfig,
    ) -> ToolResult:
        """Run every step of *plan* in order and aggregate the outcome."""
        ...


@runtime_checkable
class ProviderGateway(Protocol):
    """One remote generation call. Expected failures come back as ``error``."""

    async def generate(self, request: ProviderRequest) -> ProviderResult: ...
