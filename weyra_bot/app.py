from __future__ import annotations

import asyncio
import logging

from .config import Settings
from .dialogue.context import ContextBuilder
from .dialogue.cooldowns import CooldownTracker
from .dialogue.orchestrator import Orchestrator
from .dialogue.pacer import ReplyPacer
from .dialogue.service import DialogueService
from .discord.client import WeyraDiscordBot
from .memory.factory import build_memory_store
from .memory.history import ConversationHistory
from .prompts.dialogue import load_persona_prompt
from .services.openai_client import OpenAIChatClient
from .services.weather_client import WeatherClient
from .tools.dispatcher import ToolDispatcher
from .tools.registry import build_default_registry

logger = logging.getLogger("weyra_bot")


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("discord.gateway").setLevel(logging.WARNING)
    logging.getLogger("discord.client").setLevel(logging.WARNING)


def build_bot(settings: Settings) -> WeyraDiscordBot:
    memory = build_memory_store(settings)
    llm = OpenAIChatClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.openai_timeout_seconds,
        base_url=settings.openai_base_url,
    )
    weather = WeatherClient(
        base_url=settings.weather_base_url,
        timeout_seconds=settings.weather_timeout_seconds,
    )
    history = ConversationHistory(
        memory,
        fetch_limit=settings.history_fetch_limit,
        keep_last=settings.history_keep_last,
        prune_sample_rate=settings.history_prune_sample_rate,
    )
    pacer = ReplyPacer(
        CooldownTracker(),
        history,
        cooldown_ms=settings.reply_cooldown_ms,
        default_delay_ms=settings.reply_default_delay_ms,
    )
    registry = build_default_registry(
        store=memory,
        history=history,
        pacer=pacer,
        weather=weather,
        memory_search_limit=settings.memory_search_limit,
    )
    context_builder = ContextBuilder(
        history,
        load_persona_prompt(settings.ai_prompt_path),
        registry.summaries(),
        fetch_limit=settings.history_fetch_limit,
    )
    dialogue = DialogueService(
        history=history,
        context_builder=context_builder,
        orchestrator=Orchestrator(llm, ToolDispatcher(registry)),
        fallback_reply=settings.fallback_reply,
    )
    return WeyraDiscordBot(
        settings=settings,
        memory=memory,
        llm=llm,
        weather=weather,
        dialogue=dialogue,
    )


async def _run_bot(settings: Settings) -> None:
    bot = build_bot(settings)
    async with bot:
        await bot.start(settings.discord_token)


def main() -> None:
    configure_logging()
    settings = Settings.from_env()
    settings.validate()
    try:
        asyncio.run(_run_bot(settings))
    except KeyboardInterrupt:
        logger.info("Shutdown requested, exiting.")
