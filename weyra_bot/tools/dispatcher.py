from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict

from ..errors import ToolError, UpstreamFailure, ValidationError
from ..services.openai_client import ToolCall
from .base import ToolContext
from .registry import ToolRegistry


logger = logging.getLogger("weyra_bot")


def decode_arguments(raw: str | None) -> Dict[str, Any]:
    text = (raw or "").strip()
    if not text:
        return {}
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Tool arguments are not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Tool arguments must be a JSON object")
    return payload


class ToolDispatcher:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def dispatch(self, call: ToolCall, ctx: ToolContext) -> Dict[str, Any]:
        handler = self.registry.get(call.name)
        try:
            args = handler.parse(decode_arguments(call.arguments))
        except ToolError:
            raise
        except Exception as exc:
            raise ValidationError(f"{call.name} arguments are invalid: {exc}") from exc

        try:
            result = await handler.run(args, ctx)
        except asyncio.CancelledError:
            raise
        except ToolError:
            raise
        except Exception as exc:
            raise UpstreamFailure(f"{call.name} failed: {exc}", cause=exc) from exc

        logger.info("[tool.ok] name=%s user=%s channel=%s", call.name, ctx.user_id, ctx.channel_id)
        return result
