from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from weyra_bot.errors import UpstreamFailure  # noqa: E402
from weyra_bot.services.openai_client import ModelReply, OpenAIChatClient, ToolCall  # noqa: E402
from weyra_bot.services.weather_client import WeatherClient  # noqa: E402


class _FakeResponse:
    def __init__(self, status: int, payload: Any) -> None:
        self.status = status
        self._text = payload if isinstance(payload, str) else json.dumps(payload)

    async def __aenter__(self) -> "_FakeResponse":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def text(self) -> str:
        return self._text


class _FakeSession:
    def __init__(self, responses: list[_FakeResponse]) -> None:
        self.responses = responses
        self.closed = False
        self.requests: list[dict[str, Any]] = []

    def get(self, url: str) -> _FakeResponse:
        self.requests.append({"url": url})
        return self.responses.pop(0)

    def post(self, url: str, json: Any = None, headers: Any = None) -> _FakeResponse:
        self.requests.append({"url": url, "json": json, "headers": headers})
        return self.responses.pop(0)

    async def close(self) -> None:
        self.closed = True


WTTR_PAYLOAD = {
    "current_condition": [{"temp_C": "23", "weatherDesc": [{"value": "Cloudy"}]}],
    "weather": [{"maxtempC": "25"}, {"maxtempC": "26"}],
    "nearest_area": [{"areaName": [{"value": "Lisbon"}]}],
}


def test_weather_client_returns_first_entries() -> None:
    client = WeatherClient(base_url="https://wttr.in/")
    session = _FakeSession([_FakeResponse(200, WTTR_PAYLOAD)])
    client._session = session  # type: ignore[assignment]

    result = asyncio.run(client.current("São Paulo"))

    assert session.requests[0]["url"] == "https://wttr.in/S%C3%A3o%20Paulo?format=j1"
    assert result["city"] == "São Paulo"
    assert result["current_condition"]["temp_C"] == "23"
    assert result["weather"] == {"maxtempC": "25"}
    assert result["nearest_area"]["areaName"][0]["value"] == "Lisbon"


def test_weather_client_non_200_is_upstream_failure() -> None:
    client = WeatherClient()
    client._session = _FakeSession([_FakeResponse(503, "busy")])  # type: ignore[assignment]

    with pytest.raises(UpstreamFailure, match="wttr.in error: 503"):
        asyncio.run(client.current("Lisbon"))


def test_weather_client_missing_section_is_upstream_failure() -> None:
    client = WeatherClient()
    client._session = _FakeSession([_FakeResponse(200, {"current_condition": []})])  # type: ignore[assignment]

    with pytest.raises(UpstreamFailure, match="missing current_condition"):
        asyncio.run(client.current("Atlantis"))


def test_parse_reply_reads_content_and_tool_calls() -> None:
    data = {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {"id": "call_1", "type": "function", "function": {"name": "get_time", "arguments": '{"timezone": "UTC"}'}},
                        {"id": "call_2", "type": "function", "function": {"name": "", "arguments": "{}"}},
                    ],
                }
            }
        ]
    }

    reply = OpenAIChatClient._parse_reply(data)

    assert reply == ModelReply(
        content="",
        tool_calls=(ToolCall(id="call_1", name="get_time", arguments='{"timezone": "UTC"}'),),
    )


@pytest.mark.parametrize(
    "data",
    [
        {"choices": []},
        [{"message": {"content": "hi"}}],
        {"choices": ["hi"]},
        {"choices": {"message": {}}},
        {"choices": [{"message": "hi"}]},
    ],
)
def test_parse_reply_without_usable_choice_fails(data: Any) -> None:
    with pytest.raises(UpstreamFailure, match="No response from model"):
        OpenAIChatClient._parse_reply(data)


def test_parse_reply_skips_malformed_tool_call_entries() -> None:
    data = {
        "choices": [
            {
                "message": {
                    "content": "ok",
                    "tool_calls": [
                        "get_time",
                        {"id": "x", "function": "get_time"},
                        {"id": "y", "function": {"name": "get_time", "arguments": {"timezone": "UTC"}}},
                    ],
                }
            }
        ]
    }

    reply = OpenAIChatClient._parse_reply(data)

    assert reply.content == "ok"
    assert reply.tool_calls == (ToolCall(id="y", name="get_time", arguments='{"timezone": "UTC"}'),)


def test_complete_sends_tools_only_when_given() -> None:
    client = OpenAIChatClient(api_key="sk-test", model="gpt-test", timeout_seconds=30, base_url="https://llm.local/v1/")
    session = _FakeSession(
        [
            _FakeResponse(200, {"choices": [{"message": {"content": "one"}}]}),
            _FakeResponse(200, {"choices": [{"message": {"content": "two"}}]}),
        ]
    )
    client._session = session  # type: ignore[assignment]
    tools = [{"type": "function", "function": {"name": "get_time", "parameters": {}}}]

    async def _run() -> tuple[ModelReply, ModelReply]:
        first = await client.complete([{"role": "user", "content": "hi"}], tools=tools)
        second = await client.complete([{"role": "user", "content": "hi"}])
        return first, second

    first, second = asyncio.run(_run())

    assert (first.content, second.content) == ("one", "two")
    assert session.requests[0]["url"] == "https://llm.local/v1/chat/completions"
    assert session.requests[0]["headers"]["Authorization"] == "Bearer sk-test"
    assert session.requests[0]["json"]["tool_choice"] == "auto"
    assert session.requests[0]["json"]["tools"] == tools
    assert "tools" not in session.requests[1]["json"]
    assert "tool_choice" not in session.requests[1]["json"]


def test_request_retries_retriable_status(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _no_sleep(seconds: float) -> None:
        return None

    monkeypatch.setattr("weyra_bot.services.openai_client.asyncio.sleep", _no_sleep)
    client = OpenAIChatClient(api_key="k", model="m", timeout_seconds=30, retries=3)
    session = _FakeSession(
        [
            _FakeResponse(429, "slow down"),
            _FakeResponse(200, {"choices": [{"message": {"content": "ok"}}]}),
        ]
    )
    client._session = session  # type: ignore[assignment]

    reply = asyncio.run(client.complete([{"role": "user", "content": "hi"}]))

    assert reply.content == "ok"
    assert len(session.requests) == 2


def test_request_does_not_retry_client_errors() -> None:
    client = OpenAIChatClient(api_key="k", model="m", timeout_seconds=30)
    session = _FakeSession([_FakeResponse(401, "bad key")])
    client._session = session  # type: ignore[assignment]

    with pytest.raises(UpstreamFailure, match="Model error 401"):
        asyncio.run(client.complete([{"role": "user", "content": "hi"}]))
    assert len(session.requests) == 1
