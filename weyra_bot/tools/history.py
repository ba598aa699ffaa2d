from __future__ import annotations

import logging
from typing import Any, Dict, Mapping

from ..errors import ConfirmationRequired
from ..memory.history import ConversationHistory
from .base import ToolContext, ToolHandler, require_bool


logger = logging.getLogger("weyra_bot")


class ClearHistoryTool(ToolHandler):
    name = "clear_history"
    description = "Clear conversation history for the current user and channel"
    summary = "Clear conversation history for current user/channel"
    parameters = {
        "type": "object",
        "properties": {
            "confirm": {
                "type": "boolean",
                "description": "Confirmation to clear history (must be true)",
            }
        },
        "required": ["confirm"],
    }

    def __init__(self, history: ConversationHistory) -> None:
        self.history = history

    def parse(self, arguments: Mapping[str, Any]) -> bool:
        return require_bool(arguments, "confirm")

    async def run(self, args: bool, ctx: ToolContext) -> Dict[str, Any]:
        if not args:
            raise ConfirmationRequired("History clearing requires confirmation")

        deleted = await self.history.clear(ctx.user_id, ctx.channel_id)
        logger.info("[history.clear] user=%s channel=%s deleted=%s", ctx.user_id, ctx.channel_id, deleted)
        return {
            "success": True,
            "messages_deleted": deleted,
            "user_id": ctx.user_id,
            "channel_id": ctx.channel_id,
        }
