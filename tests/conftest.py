"""Shared fixtures and fake collaborators for testing."""

from __future__ import annotations

import os
from typing import Any

import pytest

from hashbot.connectors.base import BaseConnector
from hashbot.core.audit import AuditLogger
from hashbot.core.commands import CommandStore
from hashbot.core.config import AgentConfig, HashbotConfig
from hashbot.core.events import EventBus
from hashbot.core.models import (
    Plan,
    ProviderRequest,
    ProviderResult,
    ToolContext,
    ToolResult,
)
from hashbot.retry.ack import AckNotifier
from hashbot.storage.memory import MemoryCommandStore


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(HashbotConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("HASHBOT_"):
            monkeypatch.delenv(key, raising=False)


class MockMessenger(BaseConnector):
    """In-memory messenger for testing."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent_messages: list[dict[str, Any]] = []
        self.fail = fail

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        quoted_message_id: str | None = None,
        typing_delay_ms: int | None = None,
    ) -> None:
        if self.fail:
            raise ConnectionError("messenger down")
        self.sent_messages.append(
            {
                "chat_id": chat_id,
                "text": text,
                "quoted_message_id": quoted_message_id,
                "typing_delay_ms": typing_delay_ms,
            }
        )

    @property
    def texts(self) -> list[str]:
        return [m["text"] for m in self.sent_messages]


class RecordingTool:
    """Agent tool that records its calls and returns a fixed result."""

    def __init__(self, result: ToolResult | None = None, *, error: Exception | None = None):
        self.calls: list[tuple[dict[str, Any], ToolContext]] = []
        self._result = result or ToolResult(success=True, data="done")
        self._error = error

    async def execute(self, args: dict[str, Any], context: ToolContext) -> ToolResult:
        self.calls.append((args, context))
        if self._error is not None:
            raise self._error
        return self._result


class ScriptedGateway:
    """Provider gateway answering from a per-provider script."""

    def __init__(self, script: dict[str, ProviderResult | Exception] | None = None):
        self.script = script or {}
        self.requests: list[ProviderRequest] = []

    @property
    def providers_called(self) -> list[str]:
        return [r.provider for r in self.requests]

    async def generate(self, request: ProviderRequest) -> ProviderResult:
        self.requests.append(request)
        outcome = self.script.get(
            request.provider, ProviderResult(error=f"{request.provider} unavailable")
        )
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingPlanExecutor:
    def __init__(self, result: ToolResult | None = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self._result = result or ToolResult(success=True, data="plan done", multi_step=True)

    async def execute(
        self,
        plan: Plan,
        chat_id: str,
        *,
        original_input: dict[str, Any],
        language: str,
        agent_config: AgentConfig,
    ) -> ToolResult:
        self.calls.append(
            {
                "plan": plan,
                "chat_id": chat_id,
                "original_input": original_input,
                "language": language,
                "agent_config": agent_config,
            }
        )
        return self._result


@pytest.fixture
def config(tmp_path):
    return HashbotConfig(
        audit_log_path=tmp_path / "audit.jsonl",
        storage_path=tmp_path / "commands.db",
    )


@pytest.fixture
def agent_config():
    return AgentConfig(model="gemini-2.5-flash", max_iterations=8, timeout_ms=240_000)


@pytest.fixture
def mock_messenger():
    return MockMessenger()


@pytest.fixture
def notifier(mock_messenger):
    return AckNotifier(mock_messenger, language="en", typing_delay_ms=0)


@pytest.fixture
def context():
    return ToolContext(chat_id="chat-1", original_message_id="msg-9", language="en")


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def memory_store():
    return MemoryCommandStore()


@pytest.fixture
def command_store(memory_store, event_bus):
    return CommandStore(memory_store, event_bus=event_bus)


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(tmp_path / "test_audit.jsonl")


@pytest.fixture
def make_tool():
    return RecordingTool


@pytest.fixture
def make_gateway():
    return ScriptedGateway


@pytest.fixture
def plan_executor():
    return RecordingPlanExecutor()
