from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Mapping

from ..errors import ValidationError


DISCORD_EPOCH_MS = 1420070400000
_SNOWFLAKE_RE = re.compile(r"^\d{1,20}$")


@dataclass(slots=True)
class ToolContext:
    """Platform objects a tool may touch while serving one inbound message."""

    message: Any
    user: Any
    client: Any

    @property
    def user_id(self) -> str:
        return str(self.user.id)

    @property
    def channel_id(self) -> str:
        return str(self.message.channel.id)


def snowflake_created_at(snowflake: int | str) -> str:
    timestamp_ms = (int(snowflake) >> 22) + DISCORD_EPOCH_MS
    created = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def require_str(arguments: Mapping[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {key}")
    return value.strip()


def optional_user_id(arguments: Mapping[str, Any], key: str = "user_id") -> str | None:
    value = arguments.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a Discord user id")
    text = str(value).strip()
    if not _SNOWFLAKE_RE.match(text):
        raise ValidationError(f"{key} must be a Discord user id")
    return text


def require_bool(arguments: Mapping[str, Any], key: str) -> bool:
    if key not in arguments or arguments[key] is None:
        raise ValidationError(f"Missing required field: {key}")
    value = arguments[key]
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be a boolean")


class ToolHandler(ABC):
    """One entry of the tool catalog: its wire schema, validation and behaviour."""

    name: ClassVar[str]
    description: ClassVar[str]
    parameters: ClassVar[Dict[str, Any]]
    summary: ClassVar[str] = ""

    def definition(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    @abstractmethod
    def parse(self, arguments: Mapping[str, Any]) -> Any:
        """Validate raw arguments; must not perform side effects."""

    @abstractmethod
    async def run(self, args: Any, ctx: ToolContext) -> Dict[str, Any]:
        ...
