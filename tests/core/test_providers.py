"""Tests for provider naming and fallback orders."""

import pytest

from hashbot.core.providers import (
    RETRY_PROVIDERS,
    ProviderOrder,
    ProviderOrders,
    display_provider,
    format_provider_name,
    next_providers,
    normalize_provider_key,
    resolve_task_type,
    video_display_provider,
)
from hashbot.exceptions import ConfigError


class TestNextProviders:
    def test_resumes_after_last_tried_and_wraps(self):
        assert next_providers(["B"], ["A", "B", "C"], "B") == ["C", "A"]

    def test_starts_from_beginning_without_last_tried(self):
        assert next_providers([], ["A", "B", "C"]) == ["A", "B", "C"]

    def test_unknown_last_tried_starts_from_beginning(self):
        assert next_providers(["Z"], ["A", "B", "C"], "Z") == ["A", "B", "C"]

    def test_skips_every_tried_provider(self):
        assert next_providers(["A", "C"], ["A", "B", "C"], "C") == ["B"]

    def test_all_tried_is_empty(self):
        assert next_providers(["A", "B"], ["A", "B"], "B") == []


class TestProviderOrders:
    def test_default_orders(self):
        orders = ProviderOrders()
        assert orders.get("image") == ("gemini", "openai", "grok")
        assert orders.get("video") == ("openai", "gemini", "grok")
        assert orders.get("audio") == ("elevenlabs",)
        assert orders.get("image_edit") == ("gemini", "openai")

    def test_image_edit_has_no_create_only_provider(self):
        orders = ProviderOrders()
        assert set(orders.get("image_edit")) <= orders.edit_capable
        assert "grok" not in orders.get("image_edit")

    def test_candidates_resume_cyclically(self):
        assert ProviderOrders().candidates("image", ["openai"]) == ["grok", "gemini"]

    def test_task_aliases(self):
        orders = ProviderOrders()
        assert orders.get("video_creation") == orders.get("video")
        assert orders.get("image_creation") == orders.get("image")

    def test_duplicate_provider_rejected(self, tmp_path):
        path = tmp_path / "orders.yaml"
        path.write_text(
            "orders:\n"
            "  image: [gemini, gemini]\n"
            "  video: [openai]\n"
            "  audio: [elevenlabs]\n"
            "  image_edit: [gemini]\n"
            "edit_capable: [gemini]\n"
        )
        with pytest.raises(ConfigError, match="image"):
            ProviderOrders(path)

    def test_create_only_provider_in_edit_order_rejected(self, tmp_path):
        path = tmp_path / "orders.yaml"
        path.write_text(
            "orders:\n"
            "  image: [gemini]\n"
            "  video: [openai]\n"
            "  audio: [elevenlabs]\n"
            "  image_edit: [gemini, grok]\n"
            "edit_capable: [gemini]\n"
        )
        with pytest.raises(ConfigError, match="grok"):
            ProviderOrders(path)

    def test_missing_task_type_rejected(self, tmp_path):
        path = tmp_path / "orders.yaml"
        path.write_text("orders:\n  image: [gemini]\n")
        with pytest.raises(ConfigError, match="missing"):
            ProviderOrders(path)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ProviderOrders(tmp_path / "nope.yaml")

    def test_entries_normalized_to_base_keys(self, tmp_path):
        path = tmp_path / "orders.yaml"
        path.write_text(
            "orders:\n"
            "  image: [Gemini, OpenAI, Grok]\n"
            "  video: [Sora, veo3, Kling]\n"
            "  audio: [ElevenLabs]\n"
            "  image_edit: [Google, openai]\n"
            "edit_capable: [GEMINI, OpenAI]\n"
        )
        orders = ProviderOrders(path)
        assert orders.get("image") == ("gemini", "openai", "grok")
        assert orders.get("video") == ("openai", "gemini", "grok")
        assert orders.get("audio") == ("elevenlabs",)
        assert orders.get("image_edit") == ("gemini", "openai")
        assert orders.edit_capable == frozenset({"gemini", "openai"})
        assert orders.candidates("video", ["openai"]) == ["gemini", "grok"]

    def test_alias_duplicate_rejected(self, tmp_path):
        path = tmp_path / "orders.yaml"
        path.write_text(
            "orders:\n"
            "  image: [gemini]\n"
            "  video: [openai, sora-2]\n"
            "  audio: [elevenlabs]\n"
            "  image_edit: [gemini]\n"
            "edit_capable: [gemini]\n"
        )
        with pytest.raises(ConfigError, match="video"):
            ProviderOrders(path)

    def test_order_model_rejects_blank_entry(self):
        with pytest.raises(ValueError):
            ProviderOrder(task_type="image", providers=("gemini", "  "))

    def test_order_model_rejects_empty(self):
        with pytest.raises(ValueError):
            ProviderOrder(task_type="image", providers=())


class TestNaming:
    @pytest.mark.parametrize(
        ("alias", "expected"),
        [
            ("veo3", "gemini"),
            ("Google", "gemini"),
            ("sora-2-pro", "openai"),
            ("kling", "grok"),
            ("openai", "openai"),
            ("runway", "runway"),
        ],
    )
    def test_normalize_provider_key(self, alias, expected):
        assert normalize_provider_key(alias) == expected

    def test_normalize_blank(self):
        assert normalize_provider_key("  ") is None
        assert normalize_provider_key(None) is None

    def test_format_provider_name(self):
        assert format_provider_name("openai") == "OpenAI"
        assert format_provider_name("veo3") == "Veo 3"
        assert format_provider_name("mystery") == "mystery"

    def test_video_display_provider(self):
        assert video_display_provider("openai") == "sora"
        assert video_display_provider("gemini") == "veo3"
        assert video_display_provider("grok") == "kling"

    def test_display_provider_by_task(self):
        assert display_provider("video", "gemini") == "Veo 3"
        assert display_provider("image", "gemini") == "Gemini"

    def test_retry_providers_include_sentinel(self):
        assert "none" in RETRY_PROVIDERS
        assert "kling" in RETRY_PROVIDERS

    def test_resolve_task_type_rejects_unknown(self):
        with pytest.raises(ValueError):
            resolve_task_type("hologram")
