from __future__ import annotations

from typing import Dict, List

import aiosqlite

from .utils import normalize_role


class MemoryHistoryMixin:
    async def append_history_turn(self, user_id: str, channel_id: str, role: str, content: str) -> int:
        async with self._connection() as db:
            cursor = await db.execute(
                """
                INSERT INTO message_history (user_id, channel_id, role, content)
                VALUES (?, ?, ?, ?)
                """,
                (str(user_id), str(channel_id), normalize_role(role), str(content)),
            )
            await db.commit()
            return int(cursor.lastrowid)

    async def get_recent_history(self, user_id: str, channel_id: str, limit: int) -> List[Dict[str, object]]:
        async with self._connection() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, user_id, channel_id, role, content, created_at
                FROM message_history
                WHERE user_id = ? AND channel_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (str(user_id), str(channel_id), max(1, int(limit))),
            ) as cursor:
                rows = await cursor.fetchall()

        ordered = list(reversed(rows))
        return [
            {
                "id": int(row["id"]),
                "user_id": str(row["user_id"]),
                "channel_id": str(row["channel_id"]),
                "role": str(row["role"]),
                "content": str(row["content"]),
                "created_at": str(row["created_at"]),
            }
            for row in ordered
        ]

    async def count_history(self, user_id: str, channel_id: str) -> int:
        async with self._connection() as db:
            async with db.execute(
                "SELECT COUNT(*) FROM message_history WHERE user_id = ? AND channel_id = ?",
                (str(user_id), str(channel_id)),
            ) as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def prune_history(self, user_id: str, channel_id: str, keep_last: int) -> int:
        async with self._connection() as db:
            cursor = await db.execute(
                """
                DELETE FROM message_history
                WHERE user_id = ? AND channel_id = ?
                  AND id NOT IN (
                    SELECT id
                    FROM message_history
                    WHERE user_id = ? AND channel_id = ?
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                  )
                """,
                (str(user_id), str(channel_id), str(user_id), str(channel_id), max(0, int(keep_last))),
            )
            await db.commit()
            return max(0, int(cursor.rowcount))

    async def clear_history(self, user_id: str, channel_id: str) -> int:
        async with self._connection() as db:
            cursor = await db.execute(
                "DELETE FROM message_history WHERE user_id = ? AND channel_id = ?",
                (str(user_id), str(channel_id)),
            )
            await db.commit()
            return max(0, int(cursor.rowcount))
