from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Protocol, Sequence

from ..errors import ToolError
from ..services.openai_client import ModelReply
from ..tools.base import ToolContext
from ..tools.dispatcher import ToolDispatcher
from .context import ChatTurn


logger = logging.getLogger("weyra_bot")


class ChatModel(Protocol):
    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        tools: Sequence[Dict[str, Any]] | None = None,
        tool_choice: str | None = None,
    ) -> ModelReply: ...


def _result_json(result: object) -> str:
    return json.dumps(result, ensure_ascii=False, default=str)


class Orchestrator:
    """Single model call, sequential tool execution, one finalization call."""

    def __init__(self, llm: ChatModel, dispatcher: ToolDispatcher) -> None:
        self.llm = llm
        self.dispatcher = dispatcher

    async def run(self, conversation: Sequence[ChatTurn], ctx: ToolContext) -> str:
        messages: List[Dict[str, str]] = [turn.as_message() for turn in conversation]
        catalog = self.dispatcher.registry.catalog()

        reply = await self.llm.complete(messages, tools=catalog, tool_choice="auto")
        if not reply.tool_calls:
            return reply.content

        for call in reply.tool_calls:
            try:
                result = await self.dispatcher.dispatch(call, ctx)
            except ToolError as exc:
                logger.warning("Tool execution error for %s: %s", call.name, exc)
                messages.append({"role": "system", "content": f"Tool {call.name} failed: {exc}"})
                continue
            messages.append({"role": "assistant", "content": reply.content})
            messages.append(
                {
                    "role": "system",
                    "content": f"Tool {call.name} executed with result: {_result_json(result)}",
                }
            )

        final = await self.llm.complete(messages)
        if final.tool_calls:
            logger.info("Ignoring %s tool call(s) requested during finalization", len(final.tool_calls))
        return final.content
