from .base import ToolContext, ToolHandler
from .dispatcher import ToolDispatcher
from .registry import TOOL_NAMES, ToolRegistry, build_default_registry

__all__ = [
    "TOOL_NAMES",
    "ToolContext",
    "ToolDispatcher",
    "ToolHandler",
    "ToolRegistry",
    "build_default_registry",
]
