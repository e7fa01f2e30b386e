"""Abstract messenger connector."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseConnector(ABC):
    @abstractmethod
    async def start(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        text: str,
        *,
        quoted_message_id: str | None = None,
        typing_delay_ms: int | None = None,
    ) -> None:
        """Send *text*, optionally quoting a message and simulating typing first."""
