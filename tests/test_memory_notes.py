from __future__ import annotations

import asyncio
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from weyra_bot.memory.storage.utils import (  # noqa: E402
    parse_command_count,
    postgres_or_query,
    rank_memory_rows,
    tokenize_keywords,
)
from weyra_bot.memory.store import MemoryStore  # noqa: E402


def test_tokenize_keywords_drops_stop_words_and_duplicates() -> None:
    assert tokenize_keywords("The Birthday and the BIRTHDAY party, a x") == ["birthday", "party"]
    assert tokenize_keywords("") == []


def test_postgres_or_query_joins_terms() -> None:
    assert postgres_or_query("birthday june") == "birthday | june"
    assert postgres_or_query("the and") == ""


def test_parse_command_count_reads_asyncpg_status() -> None:
    assert parse_command_count("DELETE 3") == 3
    assert parse_command_count("") == 0
    assert parse_command_count("DELETE x") == 0


def test_rank_memory_rows_prefers_more_hits_then_newer_rows() -> None:
    rows = [
        {"id": 1, "keywords": "birthday june", "content": "a"},
        {"id": 2, "keywords": "birthday", "content": "b"},
        {"id": 3, "keywords": "dog", "content": "c"},
        {"id": 4, "keywords": "birthday cake party", "content": "d"},
    ]

    ranked = rank_memory_rows(rows, "birthday june", limit=5)

    assert [row["id"] for row in ranked] == [1, 2, 4]


def test_search_memories_ranks_birthday_first(tmp_path: Path) -> None:
    async def _run() -> list[dict[str, object]]:
        store = MemoryStore(tmp_path / "memory.db")
        await store.save_memory("u1", "pet dog", "has a dog called Rex")
        await store.save_memory("u1", "birthday", "birthday is June 4")
        await store.save_memory("u2", "birthday", "someone else")
        return await store.search_memories("u1", "birthday", 5)

    rows = asyncio.run(_run())

    assert len(rows) == 1
    assert rows[0]["content"] == "birthday is June 4"
    assert rows[0]["user_id"] == "u1"


def test_search_memories_returns_empty_without_matches(tmp_path: Path) -> None:
    async def _run() -> tuple[list[dict[str, object]], list[dict[str, object]]]:
        store = MemoryStore(tmp_path / "memory.db")
        await store.save_memory("u1", "pet dog", "has a dog")
        return (
            await store.search_memories("u1", "weather", 5),
            await store.search_memories("u1", "the", 5),
        )

    missing, stop_words_only = asyncio.run(_run())

    assert missing == []
    assert stop_words_only == []


def test_search_memories_respects_limit(tmp_path: Path) -> None:
    async def _run() -> list[dict[str, object]]:
        store = MemoryStore(tmp_path / "memory.db")
        for index in range(7):
            await store.save_memory("u1", "music", f"note {index}")
        return await store.search_memories("u1", "music", 5)

    rows = asyncio.run(_run())

    assert len(rows) == 5
    assert rows[0]["content"] == "note 6"
