"""Tests for localised user-facing strings."""

import pytest

from hashbot.core.messages import _MESSAGES, detect_language, message, step_tool_label, tool_ack


class TestDetectLanguage:
    def test_hebrew(self):
        assert detect_language("צייר לי חתול") == "he"

    def test_mixed_counts_as_hebrew(self):
        assert detect_language("draw חתול") == "he"

    def test_english(self):
        assert detect_language("draw a cat") == "en"

    def test_empty_defaults_to_hebrew(self):
        assert detect_language("") == "he"
        assert detect_language(None) == "he"


class TestMessage:
    def test_formats_arguments(self):
        assert message("fallback_error", "en", provider="Grok", reason="nsfw") == (
            "❌ Grok failed: nsfw"
        )

    def test_unknown_language_falls_back_to_hebrew(self):
        assert message("unknown_reason", "fr") == "סיבה לא ידועה"

    def test_both_languages_have_same_keys(self):
        assert set(_MESSAGES["he"]) == set(_MESSAGES["en"])

    @pytest.mark.parametrize(
        "field",
        ["plan", "prompt", "video_prompt", "edit", "tts_text", "music_prompt", "translation", "poll_topic"],
    )
    def test_every_restore_message_exists(self, field):
        assert message(f"restore_{field}", "en")


class TestToolAck:
    def test_with_provider(self):
        assert tool_ack("create_image", "Gemini", "en") == "Creating an image with Gemini... 🎨"

    def test_without_provider(self):
        assert tool_ack("create_image", None, "en") == "Creating an image... 🎨"

    def test_provider_inserted_before_ellipsis(self):
        assert tool_ack("create_music", "Suno", "en") == "Composing music with Suno... 🎵"

    def test_unknown_tool(self):
        assert tool_ack("weather", None, "he") == "מבצע פעולה... ⚙️"

    def test_step_tool_label(self):
        assert step_tool_label("create_poll", "he") == "סקר"
        assert step_tool_label("weird_tool", "en") == "weird_tool"
