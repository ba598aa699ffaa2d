from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from ..dialogue.pacer import OutboundPart, ReplyPacer, coerce_delay_ms
from ..errors import ValidationError
from .base import ToolContext, ToolHandler


@dataclass(frozen=True, slots=True)
class ReplyArgs:
    parts: List[OutboundPart]
    timeout_ms: int


class ReplyToUserTool(ToolHandler):
    name = "reply_to_user"
    description = (
        "Send reply messages to the user. Can send multiple messages with individual cooldowns "
        "to simulate natural human conversation"
    )
    summary = (
        "Send multiple messages with individual cooldowns to simulate natural human conversation. "
        "Break long responses into shorter, natural chunks like a real person would type. "
        'Use format: [{ content: "message", cooldown: 1000 }, ...]'
    )
    parameters = {
        "type": "object",
        "properties": {
            "messages": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "content": {
                            "type": "string",
                            "description": "The message content to send",
                        },
                        "cooldown": {
                            "type": "number",
                            "description": (
                                "Cooldown in milliseconds before sending this message "
                                "(default: 1000ms for natural typing speed)"
                            ),
                        },
                    },
                    "required": ["content"],
                },
                "description": (
                    "Array of message objects with content and optional individual cooldowns. "
                    "Use multiple messages to break long responses into natural chunks like a real person would type."
                ),
            },
            "timeout": {
                "type": "number",
                "description": "Optional initial timeout in milliseconds before sending the first reply",
            },
        },
        "required": ["messages"],
    }

    def __init__(self, pacer: ReplyPacer) -> None:
        self.pacer = pacer

    def parse(self, arguments: Mapping[str, Any]) -> ReplyArgs:
        if "messages" not in arguments or arguments["messages"] is None:
            raise ValidationError("Missing required field: messages")
        parts = self.pacer.normalize(arguments["messages"])

        raw_timeout = arguments.get("timeout")
        timeout_ms = 0 if raw_timeout is None else coerce_delay_ms(raw_timeout, "timeout")
        return ReplyArgs(parts=parts, timeout_ms=timeout_ms)

    async def run(self, args: ReplyArgs, ctx: ToolContext) -> Dict[str, Any]:
        async def _send(content: str) -> Any:
            return await ctx.message.reply(content)

        return await self.pacer.deliver(
            args.parts,
            user_id=ctx.user_id,
            channel_id=ctx.channel_id,
            send=_send,
            timeout_ms=args.timeout_ms,
        )
