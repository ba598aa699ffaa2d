from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

from .base import ToolContext, ToolHandler, optional_user_id, require_str


@dataclass(frozen=True, slots=True)
class GetMemoryArgs:
    keywords: str
    user_id: str | None


@dataclass(frozen=True, slots=True)
class SaveMemoryArgs:
    keywords: str
    content: str
    user_id: str | None


class GetMemoryTool(ToolHandler):
    name = "get_memory"
    description = "Retrieve saved memory using keywords from the database"
    summary = "Store and retrieve user memories"
    parameters = {
        "type": "object",
        "properties": {
            "keywords": {
                "type": "string",
                "description": "Keywords to search for in saved memories",
            },
            "user_id": {
                "type": "string",
                "description": "User ID to search memories for (optional, defaults to current user)",
            },
        },
        "required": ["keywords"],
    }

    def __init__(self, store: Any, limit: int = 5) -> None:
        self.store = store
        self.limit = max(1, int(limit))

    def parse(self, arguments: Mapping[str, Any]) -> GetMemoryArgs:
        return GetMemoryArgs(keywords=require_str(arguments, "keywords"), user_id=optional_user_id(arguments))

    async def run(self, args: GetMemoryArgs, ctx: ToolContext) -> Dict[str, Any]:
        owner = args.user_id or ctx.user_id
        rows = await self.store.search_memories(owner, args.keywords, self.limit)
        return {
            "found": len(rows) > 0,
            "memories": rows,
            "search_keywords": args.keywords,
        }


class SaveMemoryTool(ToolHandler):
    name = "save_memory"
    description = "Save a memory with keywords to the database"
    summary = "Store and retrieve user memories"
    parameters = {
        "type": "object",
        "properties": {
            "keywords": {
                "type": "string",
                "description": "Keywords associated with this memory for future retrieval",
            },
            "content": {
                "type": "string",
                "description": "The content/memory to save",
            },
            "user_id": {
                "type": "string",
                "description": "User ID to save memory for (optional, defaults to current user)",
            },
        },
        "required": ["keywords", "content"],
    }

    def __init__(self, store: Any) -> None:
        self.store = store

    def parse(self, arguments: Mapping[str, Any]) -> SaveMemoryArgs:
        return SaveMemoryArgs(
            keywords=require_str(arguments, "keywords"),
            content=require_str(arguments, "content"),
            user_id=optional_user_id(arguments),
        )

    async def run(self, args: SaveMemoryArgs, ctx: ToolContext) -> Dict[str, Any]:
        owner = args.user_id or ctx.user_id
        memory_id = await self.store.save_memory(owner, args.keywords, args.content)
        return {
            "success": True,
            "memory_id": memory_id,
            "keywords": args.keywords,
            "content_length": len(args.content),
        }
