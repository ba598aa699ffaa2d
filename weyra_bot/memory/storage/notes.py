from __future__ import annotations

from typing import Dict, List

import aiosqlite

from .utils import rank_memory_rows, tokenize_keywords


class MemoryNotesMixin:
    async def save_memory(self, user_id: str, keywords: str, content: str) -> int:
        async with self._connection() as db:
            cursor = await db.execute(
                "INSERT INTO memories (user_id, keywords, content) VALUES (?, ?, ?)",
                (str(user_id), str(keywords), str(content)),
            )
            await db.commit()
            return int(cursor.lastrowid)

    async def search_memories(self, user_id: str, keywords: str, limit: int = 5) -> List[Dict[str, object]]:
        if not tokenize_keywords(keywords):
            return []
        async with self._connection() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                """
                SELECT id, user_id, keywords, content, created_at
                FROM memories
                WHERE user_id = ?
                ORDER BY id DESC
                """,
                (str(user_id),),
            ) as cursor:
                rows = await cursor.fetchall()

        candidates = [
            {
                "id": int(row["id"]),
                "user_id": str(row["user_id"]),
                "keywords": str(row["keywords"]),
                "content": str(row["content"]),
                "created_at": str(row["created_at"]),
            }
            for row in rows
        ]
        return rank_memory_rows(candidates, keywords, limit)
