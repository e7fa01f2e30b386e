"""Provider resolution for single-step retries.

Manual retries stay on the provider that produced the original output unless
the user names another one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict

from hashbot.core.tools import ToolCategory, ToolSpec, infer_provider_from_name

if TYPE_CHECKING:
    from hashbot.core.models import Command

ProviderSource = Literal["override", "stored", "tool_name", "default"]

_DEFAULT_PROVIDERS: dict[ToolCategory, str] = {
    ToolCategory.IMAGE: "gemini",
    ToolCategory.VIDEO: "kling",
    ToolCategory.EDIT: "openai",
    ToolCategory.CHAT: "gemini",
}


class ProviderChoice(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str | None
    source: ProviderSource


def default_provider(category: ToolCategory) -> str | None:
    return _DEFAULT_PROVIDERS.get(category)


def stored_provider(command: Command) -> str | None:
    """Provider recorded on the command's args, falling back to its result."""
    for record in (command.tool_args, command.result or {}):
        for key in ("provider", "service"):
            value = record.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip().lower()
    return None


def resolve_provider(
    command: Command, spec: ToolSpec, override: str | None = None
) -> ProviderChoice:
    if override:
        return ProviderChoice(provider=override, source="override")

    stored = stored_provider(command)
    if stored:
        return ProviderChoice(provider=stored, source="stored")

    named = spec.provider or infer_provider_from_name(spec.name)
    if named:
        return ProviderChoice(provider=named, source="tool_name")

    return ProviderChoice(provider=default_provider(spec.category), source="default")
