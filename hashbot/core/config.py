"""Unified configuration via pydantic-settings."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_LANGUAGES = ("he", "en")
STORAGE_BACKENDS = ("memory", "sqlite")


class AgentConfig(BaseModel):
    """Execution limits handed to the multi-step plan executor."""

    model_config = ConfigDict(frozen=True)

    model: str
    max_iterations: int
    timeout_ms: int
    context_memory_enabled: bool = False


class HashbotConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HASHBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Agent settings
    agent_model: str = "gemini-2.5-flash"
    agent_max_iterations: int = 8
    agent_timeout_ms: int = 240_000
    agent_context_memory_enabled: bool = False

    # Localisation
    language: str = "he"
    ack_typing_delay_ms: int = 1000

    # Storage
    storage_backend: str = "memory"
    storage_path: Path = Path("hashbot.db")
    command_ttl_days: float = 30
    cleanup_interval_hours: float = 24

    # Providers
    provider_orders_path: Path | None = None

    # Logging
    log_level: str = "INFO"
    audit_log_path: Path = Path("audit.jsonl")
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"unsupported language: {v}")
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"storage_backend must be one of {STORAGE_BACKENDS}")
        return v

    @field_validator(
        "agent_max_iterations",
        "agent_timeout_ms",
        "command_ttl_days",
        "cleanup_interval_hours",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("ack_typing_delay_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def agent_config(self) -> AgentConfig:
        return AgentConfig(
            model=self.agent_model,
            max_iterations=self.agent_max_iterations,
            timeout_ms=self.agent_timeout_ms,
            context_memory_enabled=self.agent_context_memory_enabled,
        )
