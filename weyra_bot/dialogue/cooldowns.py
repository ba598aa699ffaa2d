from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol


@dataclass(frozen=True, slots=True)
class CooldownEntry:
    key: str
    actor_id: str
    last_used_at: float


class CooldownBackend(Protocol):
    async def get(self, key: str) -> CooldownEntry | None: ...

    async def set(self, entry: CooldownEntry) -> None: ...

    async def prune(self, prefix: str, older_than: float) -> int: ...


class InMemoryCooldownBackend:
    """Process-local map; lives as long as the process and is never persisted."""

    def __init__(self) -> None:
        self._entries: Dict[str, CooldownEntry] = {}

    async def get(self, key: str) -> CooldownEntry | None:
        return self._entries.get(key)

    async def set(self, entry: CooldownEntry) -> None:
        self._entries[entry.key] = entry

    async def prune(self, prefix: str, older_than: float) -> int:
        stale = [
            key
            for key, entry in self._entries.items()
            if key.startswith(prefix) and entry.last_used_at < older_than
        ]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


class CooldownTracker:
    def __init__(
        self,
        backend: CooldownBackend | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.backend: CooldownBackend = backend if backend is not None else InMemoryCooldownBackend()
        self._clock = clock

    @staticmethod
    def key_for(action: str, actor_id: str) -> str:
        return f"{action}:{actor_id}"

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    async def remaining_ms(self, action: str, actor_id: str, window_ms: int) -> int:
        entry = await self.backend.get(self.key_for(action, actor_id))
        if entry is None:
            return 0
        elapsed = self._now_ms() - entry.last_used_at
        if elapsed >= window_ms:
            return 0
        return int(math.ceil(window_ms - elapsed))

    async def touch(self, action: str, actor_id: str) -> None:
        key = self.key_for(action, actor_id)
        await self.backend.set(CooldownEntry(key=key, actor_id=str(actor_id), last_used_at=self._now_ms()))

    async def check_and_touch(self, action: str, actor_id: str, window_ms: int) -> int:
        """Return the remaining wait in ms, or record the use and return 0."""
        # Entries of this action older than the window no longer gate anything.
        await self.backend.prune(self.key_for(action, ""), self._now_ms() - window_ms)
        # Read and write are not atomic; concurrent tasks may both pass the gate.
        remaining = await self.remaining_ms(action, actor_id, window_ms)
        if remaining > 0:
            return remaining
        await self.touch(action, actor_id)
        return 0
