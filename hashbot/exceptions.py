"""Shared exception types for Hashbot."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hashbot.core.models import Step


class HashbotError(Exception):
    """Base exception for all Hashbot errors."""


class ConfigError(HashbotError):
    """Configuration is invalid or missing."""


class StorageError(HashbotError):
    """Persistent storage error."""


class RetryError(HashbotError):
    """A retry request could not be carried out."""


class NoPriorCommandError(RetryError):
    """There is no stored command for the chat."""


class NoMatchingStepsError(RetryError):
    """Step selectors matched nothing in the stored plan."""

    def __init__(self, steps: list[Step]) -> None:
        super().__init__("no plan steps matched the requested selectors")
        self.steps = steps


class MissingRestorableInputError(RetryError):
    """The stored command lacks the input needed to replay it."""

    def __init__(self, field: str) -> None:
        super().__init__(f"cannot restore {field} from the stored command")
        self.field = field

