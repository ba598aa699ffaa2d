from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import aiohttp

from ..errors import UpstreamFailure


logger = logging.getLogger("weyra_bot")

RETRIABLE_STATUSES = {408, 409, 429, 500, 502, 503, 504}


@dataclass(frozen=True, slots=True)
class ToolCall:
    id: str
    name: str
    arguments: str


@dataclass(frozen=True, slots=True)
class ModelReply:
    content: str
    tool_calls: tuple[ToolCall, ...] = field(default_factory=tuple)


class OpenAIChatClient:
    """Minimal Chat Completions client speaking the OpenAI wire format."""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_seconds: int,
        base_url: str = "https://api.openai.com/v1",
        retries: int = 3,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.retries = max(1, int(retries))
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        url = self._endpoint()
        last_error: Exception | None = None

        for attempt in range(1, self.retries + 1):
            try:
                async with self._session.post(url, json=payload, headers=self._headers()) as response:
                    text = await response.text()
                    if response.status == 200:
                        return json.loads(text)

                    if response.status not in RETRIABLE_STATUSES:
                        raise UpstreamFailure(f"Model error {response.status}: {text}")
                    last_error = RuntimeError(f"Model retriable error {response.status}: {text}")
            except asyncio.CancelledError:
                raise
            except UpstreamFailure:
                raise
            except Exception as exc:
                last_error = exc

            if attempt < self.retries:
                logger.warning("Model request attempt %s/%s failed: %s", attempt, self.retries, last_error)
                await asyncio.sleep(min(4.0, 0.35 * attempt + random.random() * 0.2))

        raise UpstreamFailure(f"Model request failed after retries: {last_error}", cause=last_error)

    @staticmethod
    def _parse_reply(data: Any) -> ModelReply:
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise UpstreamFailure("No response from model")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise UpstreamFailure("No response from model")

        calls: List[ToolCall] = []
        raw_calls = message.get("tool_calls")
        for raw in raw_calls if isinstance(raw_calls, list) else []:
            function = raw.get("function") if isinstance(raw, dict) else None
            if not isinstance(function, dict):
                continue
            name = str(function.get("name") or "").strip()
            if not name:
                continue
            arguments = function.get("arguments")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments if arguments is not None else {})
            calls.append(ToolCall(id=str(raw.get("id") or ""), name=name, arguments=arguments))

        content = message.get("content")
        return ModelReply(content=content if isinstance(content, str) else "", tool_calls=tuple(calls))

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        tools: Sequence[Dict[str, Any]] | None = None,
        tool_choice: str | None = None,
    ) -> ModelReply:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = tool_choice or "auto"
        data = await self._request(payload)
        return self._parse_reply(data)
