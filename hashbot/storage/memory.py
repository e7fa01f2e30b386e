"""In-memory command store, keyed by (chat, message)."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from hashbot.core.models import Command


class MemoryCommandStore:
    def __init__(self) -> None:
        self._data: dict[tuple[str, str], Command] = {}

    async def save(self, command: Command) -> None:
        self._data[(command.chat_id, command.message_id)] = command

    async def get_last(self, chat_id: str) -> Command | None:
        commands = [c for (chat, _), c in self._data.items() if chat == chat_id]
        if not commands:
            return None
        return max(commands, key=lambda c: c.timestamp)

    async def delete_older_than(self, cutoff: datetime) -> int:
        expired = [k for k, c in self._data.items() if c.timestamp < cutoff]
        for key in expired:
            del self._data[key]
        return len(expired)

    async def delete_all(self) -> None:
        self._data.clear()

    async def setup(self) -> None:
        pass

    async def teardown(self) -> None:
        pass
