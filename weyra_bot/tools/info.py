from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import NotInServer, ValidationError
from .base import ToolContext, ToolHandler, optional_user_id, require_str, snowflake_created_at


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _enum_value(value: object) -> object:
    return getattr(value, "value", value)


def _asset_key(value: object) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "key", value))


@dataclass(frozen=True, slots=True)
class UserInfoArgs:
    user_id: str | None


@dataclass(frozen=True, slots=True)
class TimeArgs:
    timezone: str
    zone: ZoneInfo


class GetUserInfoTool(ToolHandler):
    name = "get_user_info"
    description = "Get information about a Discord user"
    summary = "Get Discord user information"
    parameters = {
        "type": "object",
        "properties": {
            "user_id": {
                "type": "string",
                "description": "User ID to get info for (optional, defaults to current user)",
            }
        },
    }

    def parse(self, arguments: Mapping[str, Any]) -> UserInfoArgs:
        return UserInfoArgs(user_id=optional_user_id(arguments))

    async def run(self, args: UserInfoArgs, ctx: ToolContext) -> Dict[str, Any]:
        if args.user_id is None or args.user_id == ctx.user_id:
            user = ctx.user
        else:
            user = await ctx.client.fetch_user(int(args.user_id))

        return {
            "id": str(user.id),
            "username": user.name,
            "discriminator": getattr(user, "discriminator", None),
            "avatar": _asset_key(getattr(user, "avatar", None)),
            "bot": bool(getattr(user, "bot", False)),
            "created_at": snowflake_created_at(user.id),
        }


class GetTimeTool(ToolHandler):
    name = "get_time"
    description = "Get current time for a specific timezone"
    summary = "Get time in any timezone"
    parameters = {
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "Timezone to get time for (e.g., 'America/New_York', 'Europe/London')",
            }
        },
        "required": ["timezone"],
    }

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock

    def parse(self, arguments: Mapping[str, Any]) -> TimeArgs:
        name = require_str(arguments, "timezone")
        try:
            zone = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
            raise ValidationError(f"Invalid time zone specified: {name}") from exc
        return TimeArgs(timezone=name, zone=zone)

    async def run(self, args: TimeArgs, ctx: ToolContext) -> Dict[str, Any]:
        now = self._clock().astimezone(timezone.utc)
        local = now.astimezone(args.zone)
        return {
            "timezone": args.timezone,
            "current_time": local.strftime("%m/%d/%Y, %I:%M:%S %p %Z"),
            "utc_time": now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "timestamp": int(now.timestamp() * 1000),
        }


class GetServerInfoTool(ToolHandler):
    name = "get_server_info"
    description = "Get information about the Discord server"
    summary = "Get Discord server information"
    parameters = {"type": "object", "properties": {}}

    def parse(self, arguments: Mapping[str, Any]) -> None:
        return None

    async def run(self, args: None, ctx: ToolContext) -> Dict[str, Any]:
        guild = getattr(ctx.message, "guild", None)
        if guild is None:
            raise NotInServer()

        return {
            "id": str(guild.id),
            "name": guild.name,
            "description": getattr(guild, "description", None),
            "member_count": getattr(guild, "member_count", None),
            "created_at": snowflake_created_at(guild.id),
            "owner_id": str(guild.owner_id) if getattr(guild, "owner_id", None) is not None else None,
            "verification_level": _enum_value(getattr(guild, "verification_level", None)),
            "boost_level": getattr(guild, "premium_tier", None),
            "boost_count": getattr(guild, "premium_subscription_count", None),
        }
