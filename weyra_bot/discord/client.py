from __future__ import annotations

import asyncio
import logging
from typing import Any

import discord

from ..config import Settings
from ..dialogue.service import DialogueService
from ..services.openai_client import OpenAIChatClient
from ..services.weather_client import WeatherClient
from .mixins.addressing_mixin import AddressingMixin
from .mixins.message_mixin import MessageMixin


logger = logging.getLogger("weyra_bot")


class WeyraDiscordBot(
    MessageMixin,
    AddressingMixin,
    discord.Client,
):
    def __init__(
        self,
        settings: Settings,
        memory: Any,
        llm: OpenAIChatClient,
        weather: WeatherClient,
        dialogue: DialogueService,
    ) -> None:
        intents = discord.Intents.default()
        intents.message_content = True

        super().__init__(intents=intents)

        self.settings = settings
        self.memory = memory
        self.llm = llm
        self.weather = weather
        self.dialogue = dialogue

    async def setup_hook(self) -> None:
        await self.memory.init()
        await self.memory.ping()
        logger.info("Memory backend ready: %s", getattr(self.memory, "backend_name", "unknown"))
        await self.llm.start()
        await self.weather.start()

    async def close(self) -> None:
        await self._run_shutdown_step("weather.close", self.weather.close(), timeout=6.0)
        await self._run_shutdown_step("llm.close", self.llm.close(), timeout=6.0)
        await self._run_shutdown_step("memory.close", self.memory.close(), timeout=6.0)
        await self._run_shutdown_step("discord.Client.close", super().close(), timeout=6.0)

    async def _run_shutdown_step(self, label: str, coro: object, *, timeout: float) -> None:
        try:
            await asyncio.wait_for(coro, timeout=timeout)  # type: ignore[arg-type]
        except asyncio.TimeoutError:
            logger.warning("Shutdown step timed out: %s", label)
        except Exception as exc:
            logger.warning("Shutdown step failed: %s (%s)", label, exc)

    async def on_ready(self) -> None:
        if self.user:
            logger.info("Connected as %s (%s)", self.user, self.user.id)
