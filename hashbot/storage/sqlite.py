"""SQLite command store: last commands survive restarts."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog
from pydantic import ValidationError

from hashbot.core.models import Command, Plan
from hashbot.exceptions import StorageError

logger = structlog.get_logger()

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS last_commands (
    chat_id TEXT NOT NULL,
    message_id TEXT NOT NULL,
    tool TEXT,
    tool_args TEXT,
    plan TEXT,
    is_multi_step INTEGER DEFAULT 0,
    prompt TEXT,
    result TEXT,
    failed INTEGER DEFAULT 0,
    timestamp TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (chat_id, message_id)
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_last_commands_chat
ON last_commands (chat_id, timestamp)
"""

# Columns added after the initial schema.
_MIGRATIONS = {
    "image_url": "ALTER TABLE last_commands ADD COLUMN image_url TEXT",
    "video_url": "ALTER TABLE last_commands ADD COLUMN video_url TEXT",
    "audio_url": "ALTER TABLE last_commands ADD COLUMN audio_url TEXT",
}


def _dumps(value: Any) -> str | None:
    return None if value is None else json.dumps(value, default=str)


def _loads(value: str | None) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning("sqlite_command_json_invalid", value=value[:100])
        return None


def _parse_plan(value: str | None) -> Plan | None:
    data = _loads(value)
    if data is None:
        return None
    try:
        return Plan.model_validate(data)
    except ValidationError:
        logger.warning("sqlite_command_plan_invalid")
        return None


class SqliteCommandStore:
    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None

    async def setup(self) -> None:
        try:
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute(_CREATE_TABLE)
            await self._db.execute(_CREATE_INDEX)

            cursor = await self._db.execute("PRAGMA table_info(last_commands)")
            existing = {row[1] for row in await cursor.fetchall()}
            for column, statement in _MIGRATIONS.items():
                if column not in existing:
                    await self._db.execute(statement)

            await self._db.commit()
            logger.info("sqlite_store_initialized", db_path=self._db_path)
        except Exception as e:
            logger.error(
                "sqlite_store_init_failed", db_path=self._db_path, error=str(e)
            )
            raise StorageError(f"Failed to initialize SQLite store: {e}") from e

    async def teardown(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("sqlite_store_closed", db_path=self._db_path)

    def _conn(self) -> aiosqlite.Connection:
        if not self._db:
            raise StorageError("Store not initialized, call setup() first")
        return self._db

    async def save(self, command: Command) -> None:
        db = self._conn()
        await db.execute(
            """INSERT INTO last_commands
               (chat_id, message_id, tool, tool_args, plan, is_multi_step,
                prompt, result, failed, image_url, video_url, audio_url,
                timestamp, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT (chat_id, message_id) DO UPDATE SET
                 tool = excluded.tool,
                 tool_args = excluded.tool_args,
                 plan = excluded.plan,
                 is_multi_step = excluded.is_multi_step,
                 prompt = excluded.prompt,
                 result = excluded.result,
                 failed = excluded.failed,
                 image_url = excluded.image_url,
                 video_url = excluded.video_url,
                 audio_url = excluded.audio_url,
                 timestamp = excluded.timestamp,
                 updated_at = excluded.updated_at""",
            (
                command.chat_id,
                command.message_id,
                command.tool,
                _dumps(command.tool_args),
                _dumps(command.plan.model_dump() if command.plan else None),
                int(command.is_multi_step),
                command.prompt,
                _dumps(command.result),
                int(command.failed),
                command.image_url,
                command.video_url,
                command.audio_url,
                command.timestamp.astimezone(UTC).isoformat(timespec="microseconds"),
                datetime.now(UTC).isoformat(),
            ),
        )
        await db.commit()

    async def get_last(self, chat_id: str) -> Command | None:
        db = self._conn()
        cursor = await db.execute(
            """SELECT * FROM last_commands
               WHERE chat_id = ?
               ORDER BY timestamp DESC
               LIMIT 1""",
            (chat_id,),
        )
        row = await cursor.fetchone()
        if not row:
            logger.debug("sqlite_command_not_found", chat_id=chat_id)
            return None
        return self._row_to_command(row)

    async def delete_older_than(self, cutoff: datetime) -> int:
        db = self._conn()
        cursor = await db.execute(
            "DELETE FROM last_commands WHERE timestamp < ?",
            (cutoff.astimezone(UTC).isoformat(timespec="microseconds"),),
        )
        await db.commit()
        return cursor.rowcount or 0

    async def delete_all(self) -> None:
        db = self._conn()
        await db.execute("DELETE FROM last_commands")
        await db.commit()

    @staticmethod
    def _row_to_command(row: aiosqlite.Row) -> Command:
        return Command(
            chat_id=row["chat_id"],
            message_id=row["message_id"],
            tool=row["tool"],
            tool_args=_loads(row["tool_args"]) or {},
            plan=_parse_plan(row["plan"]),
            is_multi_step=bool(row["is_multi_step"]),
            prompt=row["prompt"],
            result=_loads(row["result"]),
            failed=bool(row["failed"]),
            image_url=row["image_url"],
            video_url=row["video_url"],
            audio_url=row["audio_url"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )
