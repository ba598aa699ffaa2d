from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Dict, List

import asyncpg

from .storage.utils import normalize_role, parse_command_count, postgres_or_query


logger = logging.getLogger("weyra_bot")


def _as_text(value: object) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


class PostgresMemoryStore:
    """Postgres-backed store implementing the same API as MemoryStore."""

    SCHEMA_VERSION = 1
    backend_name = "postgres"

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn.strip()
        if not self.dsn:
            raise ValueError("MEMORY_POSTGRES_DSN cannot be empty")
        self._pool: asyncpg.Pool | None = None
        self._init_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=1,
                max_size=6,
                command_timeout=30.0,
            )
        return self._pool

    async def _ready_pool(self) -> asyncpg.Pool:
        if not self._initialized:
            await self.init()
        return await self._ensure_pool()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        self._initialized = False

    async def ping(self) -> None:
        pool = await self._ensure_pool()
        async with pool.acquire() as conn:
            await conn.execute("SELECT 1")

    async def init(self) -> None:
        async with self._init_lock:
            if self._initialized:
                return
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                async with conn.transaction():
                    version = await self._get_schema_version(conn)
                    if version > self.SCHEMA_VERSION:
                        raise RuntimeError(
                            f"Postgres memory schema version {version} is newer than supported {self.SCHEMA_VERSION}. "
                            "Upgrade the bot before starting."
                        )
                    await self._create_schema(conn)
                    if version != self.SCHEMA_VERSION:
                        await self._set_schema_version(conn, self.SCHEMA_VERSION)
            self._initialized = True
            logger.info("Postgres memory schema ready (version=%s)", self.SCHEMA_VERSION)

    async def _get_schema_version(self, conn: asyncpg.Connection) -> int:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS memory_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        row = await conn.fetchrow("SELECT value FROM memory_meta WHERE key = 'schema_version'")
        if row is None:
            return 0
        try:
            return int(str(row["value"]))
        except ValueError:
            return 0

    async def _set_schema_version(self, conn: asyncpg.Connection, version: int) -> None:
        await conn.execute(
            """
            INSERT INTO memory_meta (key, value, updated_at)
            VALUES ('schema_version', $1, NOW())
            ON CONFLICT(key) DO UPDATE SET
                value = EXCLUDED.value,
                updated_at = NOW()
            """,
            str(int(version)),
        )

    async def _create_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS active_channels (
                channel_id VARCHAR(32) PRIMARY KEY,
                last_interaction TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );

            CREATE TABLE IF NOT EXISTS memories (
                id BIGSERIAL PRIMARY KEY,
                user_id VARCHAR(255) NOT NULL,
                keywords TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );

            CREATE INDEX IF NOT EXISTS idx_memories_keywords
            ON memories USING gin(to_tsvector('english', keywords));

            CREATE TABLE IF NOT EXISTS message_history (
                id BIGSERIAL PRIMARY KEY,
                user_id VARCHAR(255) NOT NULL,
                channel_id VARCHAR(255) NOT NULL,
                role VARCHAR(50) NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                content TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );

            CREATE INDEX IF NOT EXISTS idx_message_history_user_channel
            ON message_history (user_id, channel_id, created_at DESC);
            """
        )

    async def append_history_turn(self, user_id: str, channel_id: str, role: str, content: str) -> int:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            turn_id = await conn.fetchval(
                """
                INSERT INTO message_history (user_id, channel_id, role, content)
                VALUES ($1, $2, $3, $4)
                RETURNING id
                """,
                str(user_id),
                str(channel_id),
                normalize_role(role),
                str(content),
            )
        return int(turn_id)

    async def get_recent_history(self, user_id: str, channel_id: str, limit: int) -> List[Dict[str, object]]:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, channel_id, role, content, created_at
                FROM message_history
                WHERE user_id = $1 AND channel_id = $2
                ORDER BY created_at DESC, id DESC
                LIMIT $3
                """,
                str(user_id),
                str(channel_id),
                max(1, int(limit)),
            )
        ordered = list(reversed(rows))
        return [
            {
                "id": int(row["id"]),
                "user_id": str(row["user_id"]),
                "channel_id": str(row["channel_id"]),
                "role": str(row["role"]),
                "content": str(row["content"]),
                "created_at": _as_text(row["created_at"]),
            }
            for row in ordered
        ]

    async def count_history(self, user_id: str, channel_id: str) -> int:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            value = await conn.fetchval(
                "SELECT COUNT(*) FROM message_history WHERE user_id = $1 AND channel_id = $2",
                str(user_id),
                str(channel_id),
            )
        return int(value or 0)

    async def prune_history(self, user_id: str, channel_id: str, keep_last: int) -> int:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            status = await conn.execute(
                """
                DELETE FROM message_history
                WHERE user_id = $1 AND channel_id = $2
                  AND id NOT IN (
                    SELECT id
                    FROM message_history
                    WHERE user_id = $1 AND channel_id = $2
                    ORDER BY created_at DESC, id DESC
                    LIMIT $3
                  )
                """,
                str(user_id),
                str(channel_id),
                max(0, int(keep_last)),
            )
        return parse_command_count(status)

    async def clear_history(self, user_id: str, channel_id: str) -> int:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            status = await conn.execute(
                "DELETE FROM message_history WHERE user_id = $1 AND channel_id = $2",
                str(user_id),
                str(channel_id),
            )
        return parse_command_count(status)

    async def save_memory(self, user_id: str, keywords: str, content: str) -> int:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            memory_id = await conn.fetchval(
                """
                INSERT INTO memories (user_id, keywords, content)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                str(user_id),
                str(keywords),
                str(content),
            )
        return int(memory_id)

    async def search_memories(self, user_id: str, keywords: str, limit: int = 5) -> List[Dict[str, object]]:
        tsquery = postgres_or_query(keywords)
        if not tsquery:
            return []
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT id, user_id, keywords, content, created_at
                FROM memories
                WHERE user_id = $1
                  AND to_tsvector('english', keywords) @@ to_tsquery('english', $2)
                ORDER BY ts_rank(to_tsvector('english', keywords), to_tsquery('english', $2)) DESC, id DESC
                LIMIT $3
                """,
                str(user_id),
                tsquery,
                max(1, int(limit)),
            )
        return [
            {
                "id": int(row["id"]),
                "user_id": str(row["user_id"]),
                "keywords": str(row["keywords"]),
                "content": str(row["content"]),
                "created_at": _as_text(row["created_at"]),
            }
            for row in rows
        ]

    async def mark_channel_active(self, channel_id: str) -> None:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO active_channels (channel_id, last_interaction)
                VALUES ($1, NOW())
                ON CONFLICT (channel_id) DO UPDATE SET
                    last_interaction = NOW()
                """,
                str(channel_id),
            )

    async def is_channel_active(self, channel_id: str) -> bool:
        pool = await self._ready_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow("SELECT 1 FROM active_channels WHERE channel_id = $1", str(channel_id))
        return row is not None
