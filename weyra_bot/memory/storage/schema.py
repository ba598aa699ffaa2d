from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from .utils import _sqlite_memory_connection


class MemorySchemaMixin:
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_lock = asyncio.Lock()
        self._initialized = False

    @staticmethod
    def _allow_destructive_reset_on_mismatch() -> bool:
        raw = os.getenv("MEMORY_SQLITE_RESET_ON_SCHEMA_MISMATCH", "")
        return raw.strip().lower() in {"1", "true", "yes", "y", "on"}

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            async with _sqlite_memory_connection(self.db_path) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                async with db.execute("PRAGMA user_version") as cursor:
                    row = await cursor.fetchone()
                version = int(row[0]) if row else 0

                if version > self.SCHEMA_VERSION:
                    if not self._allow_destructive_reset_on_mismatch():
                        raise RuntimeError(
                            "SQLite schema version mismatch detected (database is newer than this bot build). "
                            f"Found user_version={version}, supported={self.SCHEMA_VERSION}. "
                            "Set MEMORY_SQLITE_RESET_ON_SCHEMA_MISMATCH=1 to allow destructive reset."
                        )
                    await self._reset_schema(db)
                else:
                    await self._create_schema(db)

                if version != self.SCHEMA_VERSION:
                    await db.execute(f"PRAGMA user_version = {self.SCHEMA_VERSION}")
                await db.commit()
            self._initialized = True

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[aiosqlite.Connection]:
        # Schema is created lazily so callers never depend on init() ordering.
        if not self._initialized:
            await self.init()
        async with _sqlite_memory_connection(self.db_path) as db:
            yield db

    async def _reset_schema(self, db: aiosqlite.Connection) -> None:
        for table in ("active_channels", "memories", "message_history"):
            await db.execute(f"DROP TABLE IF EXISTS {table}")
        await self._create_schema(db)

    async def _create_schema(self, db: aiosqlite.Connection) -> None:
        await db.executescript(
            """
            CREATE TABLE IF NOT EXISTS active_channels (
                channel_id TEXT PRIMARY KEY,
                last_interaction TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS memories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                keywords TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_memories_user
            ON memories(user_id, created_at DESC);

            CREATE TABLE IF NOT EXISTS message_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                channel_id TEXT NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                content TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_message_history_user_channel
            ON message_history(user_id, channel_id, created_at DESC);
            """
        )
