from __future__ import annotations


class MemoryChannelsMixin:
    async def mark_channel_active(self, channel_id: str) -> None:
        async with self._connection() as db:
            await db.execute(
                """
                INSERT INTO active_channels (channel_id, last_interaction)
                VALUES (?, CURRENT_TIMESTAMP)
                ON CONFLICT(channel_id) DO UPDATE SET
                    last_interaction = CURRENT_TIMESTAMP
                """,
                (str(channel_id),),
            )
            await db.commit()

    async def is_channel_active(self, channel_id: str) -> bool:
        async with self._connection() as db:
            async with db.execute(
                "SELECT 1 FROM active_channels WHERE channel_id = ?",
                (str(channel_id),),
            ) as cursor:
                row = await cursor.fetchone()
        return row is not None
