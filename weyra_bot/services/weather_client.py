from __future__ import annotations

import asyncio
import json
from typing import Any, Dict
from urllib.parse import quote

import aiohttp

from ..errors import UpstreamFailure


class WeatherClient:
    """wttr.in JSON client."""

    def __init__(self, base_url: str = "https://wttr.in", timeout_seconds: int = 20) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=max(1, int(timeout_seconds)))
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    def _endpoint(self, city: str) -> str:
        return f"{self.base_url}/{quote(city, safe='')}?format=j1"

    async def _request(self, city: str) -> Dict[str, Any]:
        if self._session is None or self._session.closed:
            await self.start()
        assert self._session is not None

        try:
            async with self._session.get(self._endpoint(city)) as response:
                text = await response.text()
                if response.status != 200:
                    raise UpstreamFailure(f"wttr.in error: {response.status}")
        except asyncio.CancelledError:
            raise
        except UpstreamFailure:
            raise
        except Exception as exc:
            raise UpstreamFailure(f"wttr.in request failed: {exc}", cause=exc) from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise UpstreamFailure("wttr.in returned invalid JSON", cause=exc) from exc
        if not isinstance(data, dict):
            raise UpstreamFailure("wttr.in returned unexpected payload")
        return data

    @staticmethod
    def _first(data: Dict[str, Any], key: str) -> Dict[str, Any]:
        items = data.get(key)
        if not isinstance(items, list) or not items:
            raise UpstreamFailure(f"wttr.in response missing {key}")
        return items[0]

    async def current(self, city: str) -> Dict[str, Any]:
        data = await self._request(city)
        return {
            "city": city,
            "current_condition": self._first(data, "current_condition"),
            "weather": self._first(data, "weather"),
            "nearest_area": self._first(data, "nearest_area"),
        }
