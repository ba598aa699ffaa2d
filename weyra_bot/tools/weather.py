from __future__ import annotations

from typing import Any, Dict, Mapping

from ..services.weather_client import WeatherClient
from .base import ToolContext, ToolHandler, require_str


class GetWeatherTool(ToolHandler):
    name = "get_weather"
    description = "Get weather information for a specific city"
    summary = "Get weather for any city"
    parameters = {
        "type": "object",
        "properties": {
            "city": {
                "type": "string",
                "description": "City name to get weather for",
            }
        },
        "required": ["city"],
    }

    def __init__(self, weather: WeatherClient) -> None:
        self.weather = weather

    def parse(self, arguments: Mapping[str, Any]) -> str:
        return require_str(arguments, "city")

    async def run(self, args: str, ctx: ToolContext) -> Dict[str, Any]:
        return await self.weather.current(args)
