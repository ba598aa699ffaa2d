from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Sequence

from ..errors import RateLimited, UpstreamFailure, ValidationError
from .cooldowns import CooldownTracker


logger = logging.getLogger("weyra_bot")

REPLY_COOLDOWN_ACTION = "reply"

SendFn = Callable[[str], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[Any]]


class PacerState(str, Enum):
    IDLE = "idle"
    WAITING = "waiting"
    SENDING = "sending"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class OutboundPart:
    content: str
    delay_ms: int


def coerce_delay_ms(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field_name} must be a number of milliseconds")
    try:
        delay = float(value)
    except OverflowError as exc:
        raise ValidationError(f"{field_name} is out of range") from exc
    if not math.isfinite(delay):
        raise ValidationError(f"{field_name} is out of range")
    if delay < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return int(delay)


def normalize_reply_payload(messages: object, default_delay_ms: int = 1000) -> List[OutboundPart]:
    """Turn a ``reply_to_user`` payload into ordered parts with per-part delays."""
    if isinstance(messages, str):
        if not messages.strip():
            raise ValidationError("messages cannot be empty")
        return [OutboundPart(content=messages, delay_ms=0)]

    if not isinstance(messages, list):
        raise ValidationError("Messages must be a string or array of message objects")
    if not messages:
        raise ValidationError("messages cannot be empty")

    parts: List[OutboundPart] = []
    for index, item in enumerate(messages):
        default = default_delay_ms if index > 0 else 0
        if isinstance(item, str):
            content, delay = item, default
        elif isinstance(item, dict):
            content = item.get("content")
            raw_delay = item.get("cooldown")
            delay = default if raw_delay is None else coerce_delay_ms(raw_delay, f"messages[{index}].cooldown")
        else:
            raise ValidationError(f"messages[{index}] must be a string or an object with content")

        if not isinstance(content, str) or not content.strip():
            raise ValidationError(f"messages[{index}].content is required")
        # Only the leading timeout delays the first send.
        parts.append(OutboundPart(content=content, delay_ms=delay if index > 0 else 0))
    return parts


class ReplyRun:
    """One paced delivery: IDLE -> WAITING -> SENDING -> WAITING -> ... -> DONE | FAILED."""

    def __init__(
        self,
        parts: Sequence[OutboundPart],
        *,
        send: SendFn,
        on_sent: Callable[[str], Awaitable[Any]],
        sleep: SleepFn,
        timeout_ms: int = 0,
    ) -> None:
        self.parts = list(parts)
        self.timeout_ms = max(0, int(timeout_ms))
        self.state = PacerState.IDLE
        self.transitions: List[PacerState] = [PacerState.IDLE]
        self.sent = 0
        self._send = send
        self._on_sent = on_sent
        self._sleep = sleep

    def _move(self, state: PacerState) -> None:
        self.state = state
        self.transitions.append(state)

    async def _wait(self, delay_ms: int) -> None:
        if delay_ms <= 0:
            return
        self._move(PacerState.WAITING)
        await self._sleep(delay_ms / 1000.0)

    async def execute(self) -> List[str]:
        results: List[str] = []
        try:
            await self._wait(self.timeout_ms)
            for index, part in enumerate(self.parts):
                if index > 0:
                    await self._wait(part.delay_ms)
                self._move(PacerState.SENDING)
                await self._send(part.content)
                self.sent += 1
                await self._on_sent(part.content)
                results.append(f"Message {index + 1} sent successfully (cooldown: {part.delay_ms}ms)")
        except asyncio.CancelledError:
            self._move(PacerState.FAILED)
            raise
        except Exception as exc:
            self._move(PacerState.FAILED)
            raise UpstreamFailure(
                f"Reply failed after {self.sent} of {len(self.parts)} messages: {exc}",
                cause=exc,
            ) from exc
        self._move(PacerState.DONE)
        return results


class ReplyPacer:
    def __init__(
        self,
        cooldowns: CooldownTracker,
        history: Any,
        *,
        cooldown_ms: int = 2000,
        default_delay_ms: int = 1000,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.cooldowns = cooldowns
        self.history = history
        self.cooldown_ms = max(0, int(cooldown_ms))
        self.default_delay_ms = max(0, int(default_delay_ms))
        self._sleep = sleep

    def normalize(self, messages: object) -> List[OutboundPart]:
        return normalize_reply_payload(messages, self.default_delay_ms)

    async def deliver(
        self,
        parts: Sequence[OutboundPart],
        *,
        user_id: str,
        channel_id: str,
        send: SendFn,
        timeout_ms: int = 0,
    ) -> Dict[str, object]:
        if len(parts) > 1:
            remaining = await self.cooldowns.check_and_touch(REPLY_COOLDOWN_ACTION, user_id, self.cooldown_ms)
            if remaining > 0:
                raise RateLimited(int(math.ceil(remaining / 1000.0)))

        async def _persist(content: str) -> None:
            await self.history.append(user_id, channel_id, "assistant", content)

        run = ReplyRun(parts, send=send, on_sent=_persist, sleep=self._sleep, timeout_ms=timeout_ms)
        results = await run.execute()
        logger.info("[msg.bot] channel=%s parts=%s", channel_id, run.sent)
        return {"success": True, "messages_sent": run.sent, "results": results}
