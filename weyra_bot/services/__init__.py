from .openai_client import ModelReply, OpenAIChatClient, ToolCall
from .weather_client import WeatherClient

__all__ = ["ModelReply", "OpenAIChatClient", "ToolCall", "WeatherClient"]
