from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

pytest.importorskip("discord")

import weyra_bot.discord.client as client_mod  # noqa: E402
from weyra_bot.discord.mixins import AddressingMixin, MessageMixin  # noqa: E402


BOT_ID = 99


class _FakeMemory:
    def __init__(self, *, raises: bool = False) -> None:
        self.marked: list[str] = []
        self._raises = raises

    async def mark_channel_active(self, channel_id: str) -> None:
        if self._raises:
            raise RuntimeError("db locked")
        self.marked.append(channel_id)


class _FakeDialogue:
    def __init__(self) -> None:
        self.handled: list[Any] = []

    async def handle(self, message: Any, client: Any) -> None:
        self.handled.append(message)


class _Bot(MessageMixin, AddressingMixin):
    def __init__(self, memory: _FakeMemory | None = None) -> None:
        self.user = SimpleNamespace(id=BOT_ID)
        self.memory = memory or _FakeMemory()
        self.dialogue = _FakeDialogue()


def _message(
    content: str,
    *,
    author_bot: bool = False,
    mentions: list[Any] | None = None,
    replied_to: Any = None,
) -> SimpleNamespace:
    reference = SimpleNamespace(resolved=SimpleNamespace(author=replied_to)) if replied_to is not None else None
    return SimpleNamespace(
        content=content,
        author=SimpleNamespace(id=42, bot=author_bot),
        channel=SimpleNamespace(id=555),
        mentions=mentions or [],
        reference=reference,
    )


def test_addressing_rules() -> None:
    bot = _Bot()
    me = SimpleNamespace(id=BOT_ID)
    someone = SimpleNamespace(id=7)

    assert bot._is_addressed(_message(f"<@{BOT_ID}> hi"))
    assert bot._is_addressed(_message(f"<@!{BOT_ID}> hi"))
    assert bot._is_addressed(_message("sure", replied_to=me))
    assert bot._is_addressed(_message("hey you", mentions=[me]))
    assert not bot._is_addressed(_message("just chatting"))
    assert not bot._is_addressed(_message("sure", replied_to=someone))
    assert not bot._is_addressed(_message("<@7> hi", mentions=[someone]))


def test_addressing_requires_a_logged_in_user() -> None:
    bot = _Bot()
    bot.user = None

    assert not bot._is_addressed(_message(f"<@{BOT_ID}> hi"))


def test_on_message_ignores_bots_and_unaddressed_messages() -> None:
    bot = _Bot()

    asyncio.run(bot.on_message(_message(f"<@{BOT_ID}> hi", author_bot=True)))
    asyncio.run(bot.on_message(_message("nothing for me")))

    assert bot.dialogue.handled == []
    assert bot.memory.marked == []


def test_on_message_marks_channel_and_hands_off() -> None:
    bot = _Bot()
    message = _message(f"<@{BOT_ID}> hi")

    asyncio.run(bot.on_message(message))

    assert bot.memory.marked == ["555"]
    assert bot.dialogue.handled == [message]


def test_on_message_continues_when_channel_bookkeeping_fails() -> None:
    bot = _Bot(memory=_FakeMemory(raises=True))
    message = _message(f"<@{BOT_ID}> hi")

    asyncio.run(bot.on_message(message))

    assert bot.dialogue.handled == [message]


def test_shutdown_step_swallows_step_failures() -> None:
    async def _boom() -> None:
        raise RuntimeError("close failed")

    async def _slow() -> None:
        await asyncio.sleep(1.0)

    fake_bot = SimpleNamespace()

    asyncio.run(client_mod.WeyraDiscordBot._run_shutdown_step(fake_bot, "boom", _boom(), timeout=1.0))
    asyncio.run(client_mod.WeyraDiscordBot._run_shutdown_step(fake_bot, "slow", _slow(), timeout=0.01))
