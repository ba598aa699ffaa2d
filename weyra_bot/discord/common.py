from __future__ import annotations


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]

    window = text[:limit]
    cut = window.rfind(" ")
    if cut >= int(limit * 0.7):
        return window[:cut].strip() + "..."

    return (window[: limit - 3].rstrip() + "...").strip()


def chunk_text(text: str, limit: int = 1900) -> list[str]:
    if len(text) <= limit:
        return [text]
    parts: list[str] = []
    current = ""
    for line in text.splitlines(keepends=True):
        if len(current) + len(line) <= limit:
            current += line
            continue
        if current:
            parts.append(current)
            current = ""
        if len(line) <= limit:
            current = line
        else:
            for i in range(0, len(line), limit):
                parts.append(line[i : i + limit])
    if current:
        parts.append(current)
    return parts
