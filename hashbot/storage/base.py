"""Abstract command persistence protocol."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from hashbot.core.models import Command


@runtime_checkable
class CommandPersistence(Protocol):
    async def save(self, command: Command) -> None: ...

    async def get_last(self, chat_id: str) -> Command | None: ...

    async def delete_older_than(self, cutoff: datetime) -> int: ...

    async def delete_all(self) -> None: ...

    async def setup(self) -> None: ...

    async def teardown(self) -> None: ...
