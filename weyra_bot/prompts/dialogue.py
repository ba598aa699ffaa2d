from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Tuple


logger = logging.getLogger("weyra_bot.prompts")

DEFAULT_PERSONA_PROMPT = "Error"

CONTEXT_HEADER = "Current context:"
TOOLS_HEADER = "Available tools:"

PACING_GUIDANCE = (
    "IMPORTANT: When responding with longer information (like weather, explanations, etc), break it into "
    "multiple natural messages like a real person would type. Example:\n"
    'Instead of: "It\'s cloudy and 23°C, but feels warmer, around 25°C. Very calm, no rain."\n'
    'Use: [{ content: "ta nublado com 23°", cooldown: 1500 }, '
    '{ content: "mas parece mais quente tipo 25°", cooldown: 2000 }, '
    '{ content: "bem tranquilo sem chuva", cooldown: 1000 }]'
)


def _read_text(path: Path) -> str:
    last_exc: Exception | None = None
    for encoding in ("utf-8-sig", "utf-8", "cp1251"):
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError as exc:
            last_exc = exc
    if last_exc is not None:
        raise last_exc
    raise RuntimeError(f"Unable to read prompt file: {path}")


def load_persona_prompt(path: Path) -> str:
    try:
        prompt = _read_text(path).strip()
    except OSError as exc:
        logger.warning("Failed to load AI prompt from %s, using default: %s", path, exc)
        return DEFAULT_PERSONA_PROMPT
    if not prompt:
        logger.warning("AI prompt at %s is empty, using default", path)
        return DEFAULT_PERSONA_PROMPT
    logger.info("AI prompt loaded from %s (%s chars)", path, len(prompt))
    return prompt


def build_context_lines(user_name: str, user_id: str, server_name: str | None, channel_name: str | None) -> list[str]:
    return [
        CONTEXT_HEADER,
        f"- User: {user_name} ({user_id})",
        f"- Server: {server_name or 'DM'}",
        f"- Channel: {channel_name or 'Unknown'}",
    ]


def build_tool_lines(summaries: Iterable[Tuple[str, str]]) -> list[str]:
    lines = [TOOLS_HEADER]
    for label, summary in summaries:
        lines.append(f"- {label}: {summary}")
    return lines


def build_system_prompt(
    persona_prompt: str,
    *,
    user_name: str,
    user_id: str,
    server_name: str | None,
    channel_name: str | None,
    tool_summaries: Iterable[Tuple[str, str]],
) -> str:
    sections = [
        persona_prompt.strip(),
        "\n".join(build_context_lines(user_name, user_id, server_name, channel_name)),
        "\n".join(build_tool_lines(tool_summaries)),
        PACING_GUIDANCE,
    ]
    return "\n\n".join(section for section in sections if section)
