from __future__ import annotations

from .storage.channels import MemoryChannelsMixin
from .storage.history import MemoryHistoryMixin
from .storage.notes import MemoryNotesMixin
from .storage.schema import MemorySchemaMixin


class MemoryStore(
    MemorySchemaMixin,
    MemoryHistoryMixin,
    MemoryNotesMixin,
    MemoryChannelsMixin,
):
    """SQLite store for conversation history, user memories and channel activity."""

    backend_name = "sqlite"

    async def ping(self) -> None:
        async with self._connection() as db:
            await db.execute("SELECT 1")

    async def close(self) -> None:
        # Connections are opened per operation; nothing is held between calls.
        return None
