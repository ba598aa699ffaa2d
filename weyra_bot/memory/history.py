from __future__ import annotations

import logging
import random
from typing import Any, Dict, List


logger = logging.getLogger("weyra_bot")


class ConversationHistory:
    """Per-(user, channel) conversation log over a memory store backend.

    Appends and fetches are best-effort: a failing store is logged and the
    conversation carries on without the turn. Clearing propagates errors so
    the caller can report them.
    """

    def __init__(
        self,
        store: Any,
        *,
        fetch_limit: int = 8,
        keep_last: int = 20,
        prune_sample_rate: float = 1.0,
        rng: random.Random | None = None,
    ) -> None:
        self.store = store
        self.fetch_limit = max(1, int(fetch_limit))
        self.keep_last = max(0, int(keep_last))
        self.prune_sample_rate = min(1.0, max(0.0, float(prune_sample_rate)))
        self._rng = rng or random.Random()

    async def append(self, user_id: str, channel_id: str, role: str, content: str) -> int | None:
        try:
            return await self.store.append_history_turn(str(user_id), str(channel_id), role, content)
        except Exception as exc:
            logger.warning(
                "Save message to history failed (user=%s channel=%s role=%s): %s",
                user_id,
                channel_id,
                role,
                exc,
            )
            return None

    async def fetch_recent(self, user_id: str, channel_id: str, limit: int | None = None) -> List[Dict[str, object]]:
        selected = self.fetch_limit if limit is None else max(1, int(limit))
        try:
            return await self.store.get_recent_history(str(user_id), str(channel_id), selected)
        except Exception as exc:
            logger.warning("Get message history failed (user=%s channel=%s): %s", user_id, channel_id, exc)
            return []

    async def count(self, user_id: str, channel_id: str) -> int:
        return await self.store.count_history(str(user_id), str(channel_id))

    async def prune(self, user_id: str, channel_id: str, keep_last: int | None = None) -> int:
        selected = self.keep_last if keep_last is None else max(0, int(keep_last))
        return await self.store.prune_history(str(user_id), str(channel_id), selected)

    async def clear(self, user_id: str, channel_id: str) -> int:
        return await self.store.clear_history(str(user_id), str(channel_id))

    async def maybe_prune(self, user_id: str, channel_id: str) -> int:
        """Prune the pair once its row count exceeds ``keep_last``."""
        if self.prune_sample_rate <= 0.0:
            return 0
        if self.prune_sample_rate < 1.0 and self._rng.random() >= self.prune_sample_rate:
            return 0
        try:
            if await self.count(user_id, channel_id) <= self.keep_last:
                return 0
            deleted = await self.prune(user_id, channel_id)
        except Exception as exc:
            logger.warning("Clean old history failed (user=%s channel=%s): %s", user_id, channel_id, exc)
            return 0
        if deleted:
            logger.info("[history.prune] user=%s channel=%s deleted=%s", user_id, channel_id, deleted)
        return deleted
