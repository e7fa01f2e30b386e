"""Closed catalogue of tool identifiers and their category/provider shape."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

MULTI_STEP_TOOL = "multi_step"

# Tools whose calls are never stored as the chat's last command.
NON_PERSISTED_TOOLS = frozenset(
    {
        "retry_last_command",
        "get_chat_history",
        "save_user_preference",
        "get_long_term_memory",
        "transcribe_audio",
    }
)


class ToolCategory(Enum):
    IMAGE = "image"
    VIDEO = "video"
    EDIT = "edit"
    CHAT = "chat"
    SPEECH = "speech"
    MUSIC = "music"
    TRANSLATION = "translation"
    POLL = "poll"
    LOCATION = "location"
    OTHER = "other"


MEDIA_CATEGORIES = frozenset({ToolCategory.IMAGE, ToolCategory.VIDEO, ToolCategory.EDIT})


class ToolSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    category: ToolCategory
    canonical: str
    provider: str | None = None


# name -> (category, canonical tool, provider implied by the name)
_KNOWN_TOOLS: dict[str, tuple[ToolCategory, str, str | None]] = {
    "create_image": (ToolCategory.IMAGE, "create_image", None),
    "gemini_image": (ToolCategory.IMAGE, "create_image", "gemini"),
    "openai_image": (ToolCategory.IMAGE, "create_image", "openai"),
    "grok_image": (ToolCategory.IMAGE, "create_image", "grok"),
    "create_video": (ToolCategory.VIDEO, "create_video", None),
    "veo3_video": (ToolCategory.VIDEO, "create_video", "veo3"),
    "sora_video": (ToolCategory.VIDEO, "create_video", "sora"),
    "kling_text_to_video": (ToolCategory.VIDEO, "create_video", "kling"),
    "image_to_video": (ToolCategory.VIDEO, "image_to_video", None),
    "edit_image": (ToolCategory.EDIT, "edit_image", None),
    "edit_video": (ToolCategory.EDIT, "edit_video", None),
    "gemini_chat": (ToolCategory.CHAT, "gemini_chat", "gemini"),
    "openai_chat": (ToolCategory.CHAT, "openai_chat", "openai"),
    "grok_chat": (ToolCategory.CHAT, "grok_chat", "grok"),
    "text_to_speech": (ToolCategory.SPEECH, "text_to_speech", None),
    "create_music": (ToolCategory.MUSIC, "create_music", None),
    "music_generation": (ToolCategory.MUSIC, "create_music", None),
    "translate_text": (ToolCategory.TRANSLATION, "translate_text", None),
    "create_poll": (ToolCategory.POLL, "create_poll", None),
    "send_location": (ToolCategory.LOCATION, "send_location", None),
}

_PROVIDER_NAME_HINTS = ("openai", "grok", "gemini", "sora", "veo", "kling")


def infer_provider_from_name(name: str) -> str | None:
    for hint in _PROVIDER_NAME_HINTS:
        if hint in name:
            return "veo3" if hint == "veo" else hint
    return None


def parse_tool(name: str | None) -> ToolSpec:
    name = name or ""
    known = _KNOWN_TOOLS.get(name)
    if known is None:
        return ToolSpec(
            name=name,
            category=ToolCategory.OTHER,
            canonical=name,
            provider=infer_provider_from_name(name),
        )
    category, canonical, provider = known
    return ToolSpec(name=name, category=category, canonical=canonical, provider=provider)


def is_media_tool(name: str | None) -> bool:
    """True for image/video/edit tools, including unknown planner aliases."""
    spec = parse_tool(name)
    if spec.category is not ToolCategory.OTHER:
        return spec.category in MEDIA_CATEGORIES
    return any(part in spec.name for part in ("image", "video", "edit"))
