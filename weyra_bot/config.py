from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()


def _env_lookup(name: str, aliases: tuple[str, ...] = ()) -> str | None:
    for key in (name, *aliases):
        # Be tolerant to UTF-8 BOM accidentally saved in .env key names.
        for candidate in (key, f"\ufeff{key}"):
            raw = os.getenv(candidate)
            if raw is not None:
                return raw
    return None


def _env_int(name: str, default: int, aliases: tuple[str, ...] = ()) -> int:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float, aliases: tuple[str, ...] = ()) -> float:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


def _clean_token(value: str) -> str:
    cleaned = value.strip()
    if cleaned.lower().startswith("bot "):
        cleaned = cleaned[4:].strip()
    if (cleaned.startswith('"') and cleaned.endswith('"')) or (
        cleaned.startswith("'") and cleaned.endswith("'")
    ):
        cleaned = cleaned[1:-1].strip()
    return cleaned


def _env_str(name: str, default: str, aliases: tuple[str, ...] = ()) -> str:
    raw = _env_lookup(name, aliases)
    if raw is None:
        return default
    value = raw.strip()
    return value if value else default


@dataclass(slots=True)
class Settings:
    discord_token: str

    openai_api_key: str
    openai_base_url: str
    openai_model: str
    openai_timeout_seconds: int
    ai_prompt_path: Path

    memory_backend: str
    sqlite_path: Path
    postgres_dsn: str

    history_fetch_limit: int
    history_keep_last: int
    history_prune_sample_rate: float
    memory_search_limit: int

    reply_cooldown_ms: int
    reply_default_delay_ms: int

    weather_base_url: str
    weather_timeout_seconds: int

    fallback_reply: str

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            discord_token=_clean_token(_env_lookup("DISCORD_TOKEN") or ""),
            openai_api_key=_env_str("OPENAI_API_KEY", ""),
            openai_base_url=_env_str("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            openai_model=_env_str("OPENAI_MODEL", "gpt-4o-mini"),
            openai_timeout_seconds=_env_int("OPENAI_TIMEOUT_SECONDS", 90),
            ai_prompt_path=Path(_env_str("AI_PROMPT_PATH", "./ai_prompt.txt")).expanduser(),
            memory_backend=_env_str("MEMORY_BACKEND", "sqlite").lower(),
            sqlite_path=Path(_env_str("SQLITE_PATH", "./data/weyra.db")).expanduser(),
            postgres_dsn=_env_str("MEMORY_POSTGRES_DSN", "", aliases=("DATABASE_URL",)),
            history_fetch_limit=_env_int("HISTORY_FETCH_LIMIT", 8),
            history_keep_last=_env_int("HISTORY_KEEP_LAST", 20),
            history_prune_sample_rate=_env_float("HISTORY_PRUNE_SAMPLE_RATE", 1.0),
            memory_search_limit=_env_int("MEMORY_SEARCH_LIMIT", 5),
            reply_cooldown_ms=_env_int("REPLY_COOLDOWN_MS", 2000),
            reply_default_delay_ms=_env_int("REPLY_DEFAULT_DELAY_MS", 1000),
            weather_base_url=_env_str("WEATHER_BASE_URL", "https://wttr.in"),
            weather_timeout_seconds=_env_int("WEATHER_TIMEOUT_SECONDS", 20),
            fallback_reply=_env_str("FALLBACK_REPLY", "my head hurts"),
        )

    def validate(self) -> None:
        if not self.discord_token:
            raise ValueError("DISCORD_TOKEN is required")
        if self.discord_token == "put_your_discord_bot_token_here":
            raise ValueError("DISCORD_TOKEN is still placeholder")

        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required")
        if self.openai_api_key == "put_your_openai_api_key_here":
            raise ValueError("OPENAI_API_KEY is still placeholder")
        if not self.openai_model:
            raise ValueError("OPENAI_MODEL cannot be empty")
        if self.openai_timeout_seconds < 5:
            raise ValueError("OPENAI_TIMEOUT_SECONDS must be >= 5")

        if self.memory_backend not in {"sqlite", "postgres"}:
            raise ValueError("MEMORY_BACKEND must be 'sqlite' or 'postgres'")
        if self.memory_backend == "postgres" and not self.postgres_dsn:
            raise ValueError("MEMORY_POSTGRES_DSN is required when MEMORY_BACKEND=postgres")

        if self.history_fetch_limit < 1:
            raise ValueError("HISTORY_FETCH_LIMIT must be >= 1")
        if self.history_keep_last < self.history_fetch_limit:
            raise ValueError("HISTORY_KEEP_LAST must be >= HISTORY_FETCH_LIMIT")
        if self.history_prune_sample_rate < 0.0 or self.history_prune_sample_rate > 1.0:
            raise ValueError("HISTORY_PRUNE_SAMPLE_RATE must be in [0, 1]")
        if self.memory_search_limit < 1:
            raise ValueError("MEMORY_SEARCH_LIMIT must be >= 1")

        if self.reply_cooldown_ms < 0:
            raise ValueError("REPLY_COOLDOWN_MS must be >= 0")
        if self.reply_default_delay_ms < 0:
            raise ValueError("REPLY_DEFAULT_DELAY_MS must be >= 0")
        if self.weather_timeout_seconds < 1:
            raise ValueError("WEATHER_TIMEOUT_SECONDS must be >= 1")
