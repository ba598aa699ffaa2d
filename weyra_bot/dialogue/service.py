from __future__ import annotations

import logging
import re
from typing import Any

from ..discord.common import chunk_text, truncate
from ..memory.history import ConversationHistory
from ..tools.base import ToolContext
from .context import ContextBuilder, InboundTurn
from .orchestrator import Orchestrator


logger = logging.getLogger("weyra_bot")

REPLY_SUFFIX = "\u200b"


def strip_leading_mention(content: str, bot_id: int | str | None) -> str:
    if bot_id is None:
        return (content or "").strip()
    pattern = re.compile(rf"^<@!?{bot_id}>\s*", re.IGNORECASE)
    return pattern.sub("", content or "").strip()


class DialogueService:
    """Serves one inbound chat message end to end."""

    def __init__(
        self,
        *,
        history: ConversationHistory,
        context_builder: ContextBuilder,
        orchestrator: Orchestrator,
        fallback_reply: str = "my head hurts",
    ) -> None:
        self.history = history
        self.context_builder = context_builder
        self.orchestrator = orchestrator
        self.fallback_reply = fallback_reply

    async def handle(self, message: Any, client: Any) -> None:
        try:
            await self._handle(message, client)
        except Exception as exc:
            logger.exception("Handle message error: %s", exc)
            try:
                await message.reply(self.fallback_reply)
            except Exception as send_exc:
                logger.warning("Fallback reply failed: %s", send_exc)

    async def _handle(self, message: Any, client: Any) -> None:
        author = message.author
        bot_user = getattr(client, "user", None)
        content = strip_leading_mention(message.content, getattr(bot_user, "id", None)) or message.content

        guild = getattr(message, "guild", None)
        inbound = InboundTurn(
            user_id=str(author.id),
            user_name=str(getattr(author, "name", author.id)),
            channel_id=str(message.channel.id),
            channel_name=getattr(message.channel, "name", None),
            server_name=getattr(guild, "name", None) if guild is not None else None,
            content=content,
        )
        ctx = ToolContext(message=message, user=author, client=client)

        async with message.channel.typing():
            await self.history.append(inbound.user_id, inbound.channel_id, "user", inbound.content)
            logger.info(
                "[msg.user] channel=%s user=%s text=\"%s\"",
                inbound.channel_id,
                inbound.user_name,
                truncate(inbound.content, 120),
            )
            conversation = await self.context_builder.build(inbound)
            response = await self.orchestrator.run(conversation, ctx)

        if response:
            for index, chunk in enumerate(chunk_text(response + REPLY_SUFFIX, 1900)):
                if index == 0:
                    await message.reply(chunk)
                else:
                    await message.channel.send(chunk)
            await self.history.append(inbound.user_id, inbound.channel_id, "assistant", response)
            logger.info("[msg.bot] channel=%s text=\"%s\"", inbound.channel_id, truncate(response, 120))

        await self.history.maybe_prune(inbound.user_id, inbound.channel_id)
