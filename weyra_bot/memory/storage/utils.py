from __future__ import annotations

import os
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List

import aiosqlite


HISTORY_ROLES = ("user", "assistant", "system")

_STOP_WORDS = {
    "the",
    "and",
    "for",
    "that",
    "this",
    "you",
    "your",
    "with",
    "have",
    "just",
    "like",
}


def _sqlite_busy_timeout_ms() -> int:
    raw = os.getenv("MEMORY_SQLITE_BUSY_TIMEOUT_MS", "5000").strip()
    try:
        timeout = int(raw)
    except ValueError:
        timeout = 5000
    return max(0, min(timeout, 60000))


@asynccontextmanager
async def _sqlite_memory_connection(db_path: str | Path) -> AsyncIterator[aiosqlite.Connection]:
    async with aiosqlite.connect(db_path) as db:
        timeout_ms = _sqlite_busy_timeout_ms()
        if timeout_ms > 0:
            await db.execute(f"PRAGMA busy_timeout={timeout_ms}")
        yield db


def tokenize_keywords(text: str) -> list[str]:
    """Lower-cased search terms in first-seen order, stop words dropped."""
    words = re.findall(r"\w{2,}", (text or "").casefold(), flags=re.UNICODE)
    seen: list[str] = []
    for word in words:
        if word in _STOP_WORDS or word in seen:
            continue
        seen.append(word)
    return seen


def keyword_relevance(query_terms: Iterable[str], keywords: str) -> float:
    terms = set(tokenize_keywords(keywords))
    if not terms:
        return 0.0
    hits = len(terms.intersection(query_terms))
    if hits == 0:
        return 0.0
    # Whole hits dominate; the fraction favours rows whose keywords are more focused.
    return hits + hits / len(terms)


def rank_memory_rows(rows: List[Dict[str, object]], query: str, limit: int) -> List[Dict[str, object]]:
    query_terms = set(tokenize_keywords(query))
    if not query_terms:
        return []
    scored = []
    for row in rows:
        score = keyword_relevance(query_terms, str(row.get("keywords", "")))
        if score > 0:
            scored.append((score, int(row.get("id", 0)), row))
    scored.sort(key=lambda item: (item[0], item[1]), reverse=True)
    return [row for _, _, row in scored[: max(1, int(limit))]]


def postgres_or_query(query: str) -> str:
    return " | ".join(tokenize_keywords(query))


def parse_command_count(status: str) -> int:
    # asyncpg returns command tags such as "DELETE 3".
    parts = str(status or "").split()
    if not parts:
        return 0
    try:
        return int(parts[-1])
    except ValueError:
        return 0


def normalize_role(role: str) -> str:
    value = str(role or "").strip().lower()
    if value not in HISTORY_ROLES:
        raise ValueError(f"Unsupported history role: {role!r}")
    return value
