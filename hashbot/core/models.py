"""Records passed between the command store, retry engine and providers."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hashbot.core.providers import NO_PROVIDER, RETRY_PROVIDERS
from hashbot.core.tools import MULTI_STEP_TOOL


class Step(BaseModel):
    """One tool invocation inside a plan. Planner-specific extras are kept."""

    model_config = ConfigDict(frozen=True, extra="allow")

    tool: str | None = None
    action: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    step_number: int | None = None

    def label(self) -> str:
        return self.tool or self.action[:30] or "unknown"


class Plan(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    steps: list[Step] = Field(min_length=1)


class CommandMetadata(BaseModel):
    """What a finished tool run records for later replay."""

    model_config = ConfigDict(frozen=True)

    tool: str | None = None
    tool_args: dict[str, Any] = Field(default_factory=dict)
    plan: Plan | None = None
    is_multi_step: bool = False
    prompt: str | None = None
    result: dict[str, Any] | None = None
    failed: bool = False
    image_url: str | None = None
    video_url: str | None = None
    audio_url: str | None = None


class Command(CommandMetadata):
    chat_id: str
    message_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_multi(self) -> bool:
        return self.tool == MULTI_STEP_TOOL or self.is_multi_step


class RetryArgs(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider_override: str | None = None
    modifications: str | None = None
    step_numbers: list[int] = Field(default_factory=list)
    step_tools: list[str] = Field(default_factory=list)

    @field_validator("provider_override", mode="before")
    @classmethod
    def normalize_override(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = str(v).strip().lower()
        if not v or v == NO_PROVIDER:
            return None
        if v not in RETRY_PROVIDERS:
            raise ValueError(f"unknown provider: {v}")
        return v

    @field_validator("modifications", mode="before")
    @classmethod
    def blank_modifications(cls, v: str | None) -> str | None:
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @field_validator("step_numbers", "step_tools", mode="before")
    @classmethod
    def none_to_empty(cls, v: list[Any] | None) -> list[Any]:
        return [] if v is None else v


class ToolContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    chat_id: str
    original_message_id: str | None = None
    language: str | None = None
    original_input: dict[str, Any] = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Tool outcome. Executors may attach extra diagnostics."""

    model_config = ConfigDict(frozen=True, extra="allow")

    success: bool
    data: str | None = None
    error: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    audio_url: str | None = None
    caption: str | None = None
    provider: str | None = None
    strategy_used: str | None = None


class ProviderRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_type: str
    provider: str
    prompt: str
    image_url: str | None = None


class ProviderResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str | None = None
    text: str | None = None
    description: str | None = None
    error: str | None = None
    text_only: bool = False


class ProviderFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    reason: str


class CascadeSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_type: str
    provider: str
    strategy: str
    payload: ProviderResult
    prompt: str
    failures: list[ProviderFailure] = Field(default_factory=list)


class CascadeFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_type: str
    failures: list[ProviderFailure]
    requested_provider: str | None = None


CascadeResult = CascadeSuccess | CascadeFailure
