from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Tuple

from ..dialogue.pacer import ReplyPacer
from ..errors import UnknownTool
from ..memory.history import ConversationHistory
from ..services.weather_client import WeatherClient
from .base import ToolHandler
from .history import ClearHistoryTool
from .info import GetServerInfoTool, GetTimeTool, GetUserInfoTool, _utc_now
from .memory_tools import GetMemoryTool, SaveMemoryTool
from .reply import ReplyToUserTool
from .weather import GetWeatherTool


TOOL_NAMES: Tuple[str, ...] = (
    "reply_to_user",
    "get_memory",
    "save_memory",
    "get_user_info",
    "get_time",
    "get_weather",
    "get_server_info",
    "clear_history",
)


class ToolRegistry:
    def __init__(self, handlers: Iterable[ToolHandler]) -> None:
        self._handlers: Dict[str, ToolHandler] = {}
        for handler in handlers:
            if handler.name in self._handlers:
                raise ValueError(f"Duplicate tool handler: {handler.name}")
            self._handlers[handler.name] = handler

        missing = [name for name in TOOL_NAMES if name not in self._handlers]
        extra = [name for name in self._handlers if name not in TOOL_NAMES]
        if missing or extra:
            raise ValueError(f"Tool catalog mismatch (missing={missing}, unexpected={extra})")

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def get(self, name: str) -> ToolHandler:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownTool(name)
        return handler

    def names(self) -> List[str]:
        return list(TOOL_NAMES)

    def catalog(self) -> List[Dict[str, Any]]:
        return [self._handlers[name].definition() for name in TOOL_NAMES]

    def summaries(self) -> List[Tuple[str, str]]:
        # get_memory/save_memory share one line in the system prompt.
        lines: List[Tuple[str, str]] = []
        seen: set[str] = set()
        for name in TOOL_NAMES:
            handler = self._handlers[name]
            if handler.summary in seen:
                continue
            seen.add(handler.summary)
            label = name
            if name == "get_memory":
                label = "get_memory/save_memory"
            lines.append((label, handler.summary))
        return lines


def build_default_registry(
    *,
    store: Any,
    history: ConversationHistory,
    pacer: ReplyPacer,
    weather: WeatherClient,
    memory_search_limit: int = 5,
    clock: Callable[[], datetime] = _utc_now,
) -> ToolRegistry:
    return ToolRegistry(
        [
            ReplyToUserTool(pacer),
            GetMemoryTool(store, limit=memory_search_limit),
            SaveMemoryTool(store),
            GetUserInfoTool(),
            GetTimeTool(clock=clock),
            GetWeatherTool(weather),
            GetServerInfoTool(),
            ClearHistoryTool(history),
        ]
    )
