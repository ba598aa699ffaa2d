from __future__ import annotations

import logging

import discord


logger = logging.getLogger("weyra_bot")


class MessageMixin:
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        if not self._is_addressed(message):
            return

        try:
            await self.memory.mark_channel_active(str(message.channel.id))
        except Exception as exc:
            logger.warning("Mark channel active failed (channel=%s): %s", message.channel.id, exc)

        await self.dialogue.handle(message, self)
