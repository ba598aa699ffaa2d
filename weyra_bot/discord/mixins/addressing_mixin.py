from __future__ import annotations

import re

import discord


class AddressingMixin:
    def _bot_id(self) -> int | None:
        return self.user.id if self.user else None

    def _is_addressed(self, message: discord.Message) -> bool:
        bot_id = self._bot_id()
        if bot_id is None:
            return False

        if re.match(rf"^<@!?{bot_id}>", message.content or "", flags=re.IGNORECASE):
            return True

        reference = message.reference
        resolved = getattr(reference, "resolved", None) if reference is not None else None
        author = getattr(resolved, "author", None)
        if author is not None and author.id == bot_id:
            return True

        return any(user.id == bot_id for user in message.mentions)
