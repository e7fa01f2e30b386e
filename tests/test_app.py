"""Tests for application wiring."""

import pytest

from hashbot.app import build_app, build_persistence
from hashbot.core.commands import AgentRunResult, ToolCall
from hashbot.core.config import HashbotConfig
from hashbot.core.models import ProviderResult, ToolResult
from hashbot.storage.memory import MemoryCommandStore
from hashbot.storage.sqlite import SqliteCommandStore


class TestBuildPersistence:
    def test_memory_by_default(self, config):
        assert isinstance(build_persistence(config), MemoryCommandStore)

    def test_sqlite(self, tmp_path):
        config = HashbotConfig(storage_backend="sqlite", storage_path=tmp_path / "c.db")
        assert isinstance(build_persistence(config), SqliteCommandStore)


class TestBuildApp:
    def test_registers_retry_tool(self, config, mock_messenger):
        app = build_app(config, mock_messenger, setup_logging=False)
        assert app.tools["retry_last_command"] is app.router
        assert "retry_with_different_provider" not in app.tools
        assert app.cascade is None
        assert app.audit.path == config.audit_log_path

    def test_gateway_enables_cascade(self, config, mock_messenger, make_gateway):
        app = build_app(config, mock_messenger, gateway=make_gateway(), setup_logging=False)
        assert app.cascade is not None
        assert "retry_with_different_provider" in app.tools

    def test_custom_provider_orders(self, tmp_path, mock_messenger, make_gateway):
        path = tmp_path / "orders.yaml"
        path.write_text(
            "orders:\n"
            "  image: [grok, gemini]\n"
            "  video: [gemini]\n"
            "  audio: [elevenlabs]\n"
            "  image_edit: [openai]\n"
            "edit_capable: [openai]\n"
        )
        config = HashbotConfig(provider_orders_path=path, audit_log_path=tmp_path / "a.jsonl")
        app = build_app(config, mock_messenger, gateway=make_gateway(), setup_logging=False)
        assert app.cascade.orders.get("image") == ("grok", "gemini")

    @pytest.mark.asyncio
    async def test_save_then_retry_end_to_end(self, config, mock_messenger, make_tool, context):
        image_tool = make_tool(ToolResult(success=True, image_url="https://cdn/9.png"))
        app = build_app(
            config, mock_messenger, tools={"create_image": image_tool}, setup_logging=False
        )
        await app.startup()
        try:
            await app.commands.save_from_agent_result(
                context.chat_id,
                "draw a cat",
                AgentRunResult(
                    tool_calls=[
                        ToolCall(tool="create_image", args={"prompt": "a cat", "provider": "openai"})
                    ],
                    original_message_id="m1",
                ),
            )
            result = await app.handle_tool_call(
                "retry_last_command", {"modifications": "wearing a hat"}, context
            )
        finally:
            await app.shutdown()

        assert result.image_url == "https://cdn/9.png"
        assert image_tool.calls[0][0] == {"prompt": "a cat wearing a hat", "provider": "openai"}
        assert mock_messenger.texts == ["Creating an image with OpenAI... 🎨"]
        assert "retry_completed" in config.audit_log_path.read_text()

    @pytest.mark.asyncio
    async def test_fallback_tool_end_to_end(self, config, mock_messenger, make_gateway, context):
        gateway = make_gateway({"grok": ProviderResult(url="https://cdn/g.png")})
        app = build_app(config, mock_messenger, gateway=gateway, setup_logging=False)
        await app.startup()
        try:
            result = await app.handle_tool_call(
                "retry_with_different_provider",
                {"original_prompt": "a cat", "providers_tried": ["gemini"]},
                context,
            )
        finally:
            await app.shutdown()

        assert result.success
        assert gateway.providers_called == ["openai", "grok"]
        assert "provider_failure" in config.audit_log_path.read_text()

    @pytest.mark.asyncio
    async def test_unknown_tool(self, config, context):
        app = build_app(config, setup_logging=False)
        with pytest.raises(KeyError):
            await app.handle_tool_call("nope", {}, context)

    @pytest.mark.asyncio
    async def test_lifecycle_with_sqlite(self, tmp_path):
        config = HashbotConfig(
            storage_backend="sqlite",
            storage_path=tmp_path / "c.db",
            audit_log_path=tmp_path / "a.jsonl",
        )
        app = build_app(config, setup_logging=False)
        await app.startup()
        assert app.janitor.running
        await app.shutdown()
        assert not app.janitor.running
        assert (tmp_path / "c.db").exists()
