"""Provider identities, display names and YAML-driven fallback orders."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from hashbot.exceptions import ConfigError

logger = structlog.get_logger()

DEFAULT_ORDERS_PATH = Path(__file__).parent / "provider_orders.yaml"

TaskType = Literal["image", "video", "audio", "image_edit"]
TASK_TYPES: tuple[TaskType, ...] = ("image", "video", "audio", "image_edit")


class Provider(Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    GROK = "grok"
    SORA = "sora"
    SORA_PRO = "sora-pro"
    VEO3 = "veo3"
    KLING = "kling"
    RUNWAY = "runway"
    NONE = "none"


NO_PROVIDER = Provider.NONE.value
RETRY_PROVIDERS: tuple[str, ...] = tuple(p.value for p in Provider)

_ALIASES = {
    "kling": "grok",
    "kling-text-to-video": "grok",
    "grok": "grok",
    "veo3": "gemini",
    "veo-3": "gemini",
    "veo": "gemini",
    "gemini": "gemini",
    "google": "gemini",
    "google-veo3": "gemini",
    "sora": "openai",
    "sora-2": "openai",
    "sora2": "openai",
    "sora-2-pro": "openai",
    "sora-pro": "openai",
    "openai": "openai",
}

_DISPLAY_NAMES = {
    "gemini": "Gemini",
    "openai": "OpenAI",
    "grok": "Grok",
    "veo3": "Veo 3",
    "veo-3": "Veo 3",
    "veo": "Veo 3",
    "sora": "Sora 2",
    "sora-2": "Sora 2",
    "sora2": "Sora 2",
    "sora-pro": "Sora 2 Pro",
    "sora-2-pro": "Sora 2 Pro",
    "kling": "Kling",
    "runway": "Runway",
    "suno": "Suno",
    "elevenlabs": "ElevenLabs",
}

# Base provider -> the video model it serves.
_VIDEO_DISPLAY = {"openai": "sora", "gemini": "veo3", "grok": "kling"}

_TASK_ALIASES: dict[str, TaskType] = {
    "image": "image",
    "image_creation": "image",
    "video": "video",
    "video_creation": "video",
    "image_to_video": "video",
    "audio": "audio",
    "audio_creation": "audio",
    "image_edit": "image_edit",
}


def normalize_provider_key(provider: str | None) -> str | None:
    """Map a provider or model alias to its base provider key."""
    if not provider:
        return None
    key = str(provider).strip().lower()
    if not key:
        return None
    return _ALIASES.get(key, key)


def format_provider_name(provider: str | None) -> str | None:
    if not provider:
        return provider
    return _DISPLAY_NAMES.get(provider.lower(), provider)


def video_display_provider(provider: str) -> str:
    normalized = normalize_provider_key(provider) or provider
    return _VIDEO_DISPLAY.get(normalized, provider)


def display_provider(task_type: str, provider: str) -> str:
    """Name a provider the way users know it for the given task."""
    if task_type == "video":
        return format_provider_name(video_display_provider(provider)) or provider
    return format_provider_name(provider) or provider


def resolve_task_type(name: str) -> TaskType:
    task = _TASK_ALIASES.get(name.strip().lower())
    if task is None:
        raise ValueError(f"unknown task type: {name}")
    return task


def next_providers(
    tried: list[str],
    order: tuple[str, ...] | list[str],
    last_tried: str | None = None,
) -> list[str]:
    """Untried providers, starting right after *last_tried* and wrapping."""
    start = order.index(last_tried) if last_tried in order else None
    providers: list[str] = []
    for i in range(len(order)):
        index = i if start is None else (start + 1 + i) % len(order)
        candidate = order[index]
        if candidate not in tried and candidate not in providers:
            providers.append(candidate)
    return providers


class ProviderOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    task_type: TaskType
    providers: tuple[str, ...]

    @field_validator("providers", mode="before")
    @classmethod
    def normalize_providers(cls, v: Any) -> tuple[str, ...]:
        """Map every entry to its base provider key."""
        keys = tuple(normalize_provider_key(p) for p in v or ())
        if not keys:
            raise ValueError("provider order must not be empty")
        if None in keys:
            raise ValueError(f"blank provider in order: {list(v)}")
        if len(set(keys)) != len(keys):
            raise ValueError(f"provider listed twice: {list(v)}")
        return keys


class ProviderOrders:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_ORDERS_PATH
        self._orders: dict[str, ProviderOrder] = {}
        self.edit_capable: frozenset[str] = frozenset()
        self._load(self._path)

    def _load(self, path: Path) -> None:
        try:
            with open(path) as f:
                data: dict[str, Any] = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read provider orders from {path}: {e}") from e

        self.edit_capable = frozenset(
            key for key in map(normalize_provider_key, data.get("edit_capable") or []) if key
        )
        for task_type, providers in (data.get("orders") or {}).items():
            try:
                order = ProviderOrder(task_type=task_type, providers=tuple(providers or ()))
            except ValueError as e:
                raise ConfigError(f"Invalid order for {task_type}: {e}") from e
            self._orders[order.task_type] = order

        missing = [t for t in TASK_TYPES if t not in self._orders]
        if missing:
            raise ConfigError(f"Provider orders missing task types: {missing}")

        create_only = set(self._orders["image_edit"].providers) - self.edit_capable
        if create_only:
            raise ConfigError(
                f"image_edit order lists providers that cannot edit: {sorted(create_only)}"
            )
        logger.debug("provider_orders_loaded", path=str(path), tasks=list(self._orders))

    def get(self, task_type: str) -> tuple[str, ...]:
        return self._orders[resolve_task_type(task_type)].providers

    def candidates(self, task_type: str, tried: list[str] | None = None) -> list[str]:
        """Remaining providers for a cascade, resuming after the last one tried."""
        tried = tried or []
        last = tried[-1] if tried else None
        return next_providers(tried, self.get(task_type), last)
