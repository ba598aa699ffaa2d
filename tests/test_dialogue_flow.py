from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Sequence

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from weyra_bot.dialogue.context import ChatTurn, ContextBuilder, InboundTurn, assemble_conversation  # noqa: E402
from weyra_bot.dialogue.cooldowns import CooldownTracker  # noqa: E402
from weyra_bot.dialogue.orchestrator import Orchestrator  # noqa: E402
from weyra_bot.dialogue.pacer import ReplyPacer  # noqa: E402
from weyra_bot.dialogue.service import REPLY_SUFFIX, DialogueService, strip_leading_mention  # noqa: E402
from weyra_bot.errors import UpstreamFailure  # noqa: E402
from weyra_bot.memory.history import ConversationHistory  # noqa: E402
from weyra_bot.memory.store import MemoryStore  # noqa: E402
from weyra_bot.prompts.dialogue import DEFAULT_PERSONA_PROMPT, load_persona_prompt  # noqa: E402
from weyra_bot.services.openai_client import ModelReply, ToolCall  # noqa: E402
from weyra_bot.tools import ToolContext, ToolDispatcher, build_default_registry  # noqa: E402


class _ScriptedModel:
    def __init__(self, replies: Sequence[ModelReply | Exception]) -> None:
        self.replies = list(replies)
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: Sequence[Dict[str, str]],
        tools: Sequence[Dict[str, Any]] | None = None,
        tool_choice: str | None = None,
    ) -> ModelReply:
        self.calls.append({"messages": [dict(m) for m in messages], "tools": tools, "tool_choice": tool_choice})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class _FakeWeather:
    async def current(self, city: str) -> dict[str, Any]:
        return {"city": city, "current_condition": {"temp_C": "23"}, "weather": {}, "nearest_area": {}}


class _Typing:
    async def __aenter__(self) -> None:
        return None

    async def __aexit__(self, *exc: object) -> None:
        return None


class _FakeChannel:
    def __init__(self) -> None:
        self.id = 555
        self.name = "general"
        self.sent: list[str] = []

    def typing(self) -> _Typing:
        return _Typing()

    async def send(self, content: str) -> None:
        self.sent.append(content)


class _FakeMessage:
    def __init__(self, content: str) -> None:
        self.content = content
        self.author = SimpleNamespace(id=42, name="ana", bot=False)
        self.channel = _FakeChannel()
        self.guild = SimpleNamespace(id=1, name="Lounge")
        self.replies: list[str] = []

    async def reply(self, content: str) -> None:
        self.replies.append(content)


async def _no_sleep(seconds: float) -> None:
    return None


def _wire(tmp_path: Path, model: _ScriptedModel) -> tuple[DialogueService, ConversationHistory]:
    store = MemoryStore(tmp_path / "memory.db")
    history = ConversationHistory(store, fetch_limit=8, keep_last=20)
    pacer = ReplyPacer(CooldownTracker(), history, sleep=_no_sleep)
    registry = build_default_registry(store=store, history=history, pacer=pacer, weather=_FakeWeather())
    builder = ContextBuilder(history, "You are Weyra.", registry.summaries(), fetch_limit=8)
    service = DialogueService(
        history=history,
        context_builder=builder,
        orchestrator=Orchestrator(model, ToolDispatcher(registry)),
        fallback_reply="my head hurts",
    )
    return service, history


def _ctx() -> ToolContext:
    message = _FakeMessage("hi")
    return ToolContext(message=message, user=message.author, client=SimpleNamespace())


def _orchestrator(tmp_path: Path, model: _ScriptedModel) -> Orchestrator:
    service, _ = _wire(tmp_path, model)
    return service.orchestrator


def test_assemble_conversation_skips_duplicate_inbound_turn() -> None:
    history = [{"role": "user", "content": "earlier"}, {"role": "user", "content": "hello"}]

    turns = assemble_conversation("sys", history, "hello")

    assert turns[0] == ChatTurn(role="system", content="sys")
    assert [turn.content for turn in turns] == ["sys", "earlier", "hello"]


def test_assemble_conversation_appends_new_inbound_turn() -> None:
    turns = assemble_conversation("sys", [{"role": "assistant", "content": "yo"}], "hello")

    assert turns[-1] == ChatTurn(role="user", content="hello")
    assert len(turns) == 3


def test_duplicate_guard_uses_raw_equality() -> None:
    turns = assemble_conversation("sys", [{"role": "user", "content": "hello "}], "hello")

    assert [turn.content for turn in turns] == ["sys", "hello ", "hello"]


def test_context_builder_renders_system_prompt_and_history(tmp_path: Path) -> None:
    service, history = _wire(tmp_path, _ScriptedModel([]))
    inbound = InboundTurn(
        user_id="42",
        user_name="ana",
        channel_id="555",
        channel_name="general",
        server_name=None,
        content="what's up",
    )

    async def _run() -> tuple[ChatTurn, ...]:
        await history.append("42", "555", "user", "what's up")
        return await service.context_builder.build(inbound)

    turns = asyncio.run(_run())

    system = turns[0].content
    assert system.startswith("You are Weyra.")
    assert "- User: ana (42)" in system
    assert "- Server: DM" in system
    assert "- get_memory/save_memory: Store and retrieve user memories" in system
    assert [turn.content for turn in turns[1:]] == ["what's up"]


def test_zero_tool_calls_means_a_single_model_call(tmp_path: Path) -> None:
    model = _ScriptedModel([ModelReply(content="hey!")])
    orchestrator = _orchestrator(tmp_path, model)

    text = asyncio.run(orchestrator.run((ChatTurn("system", "sys"), ChatTurn("user", "hi")), _ctx()))

    assert text == "hey!"
    assert len(model.calls) == 1
    assert model.calls[0]["tool_choice"] == "auto"
    assert len(model.calls[0]["tools"]) == 8


def test_failed_tool_is_reported_and_finalized_once(tmp_path: Path) -> None:
    model = _ScriptedModel(
        [
            ModelReply(
                content="",
                tool_calls=(
                    ToolCall(id="a", name="clear_history", arguments='{"confirm": false}'),
                    ToolCall(id="b", name="get_weather", arguments='{"city": "Lisbon"}'),
                ),
            ),
            ModelReply(content="sunny in lisbon", tool_calls=(ToolCall(id="c", name="get_time", arguments="{}"),)),
        ]
    )
    orchestrator = _orchestrator(tmp_path, model)

    text = asyncio.run(orchestrator.run((ChatTurn("system", "sys"), ChatTurn("user", "hi")), _ctx()))

    assert text == "sunny in lisbon"
    assert len(model.calls) == 2
    final_call = model.calls[1]
    assert final_call["tools"] is None
    contents = [m["content"] for m in final_call["messages"]]
    assert "Tool clear_history failed: History clearing requires confirmation" in contents
    assert any(c.startswith('Tool get_weather executed with result: {"city": "Lisbon"') for c in contents)


def test_unusable_tool_arguments_do_not_abort_the_cycle(tmp_path: Path) -> None:
    model = _ScriptedModel(
        [
            ModelReply(
                content="",
                tool_calls=(
                    ToolCall(
                        id="a",
                        name="reply_to_user",
                        arguments='{"messages": [{"content": "a"}, {"content": "b", "cooldown": 1' + "0" * 400 + "}]}",
                    ),
                    ToolCall(id="b", name="get_time", arguments='{"timezone": "America"}'),
                    ToolCall(id="c", name="get_time", arguments='{"timezone": "UTC"}'),
                ),
            ),
            ModelReply(content="done"),
        ]
    )
    ctx = _ctx()
    orchestrator = _orchestrator(tmp_path, model)

    text = asyncio.run(orchestrator.run((ChatTurn("user", "hi"),), ctx))

    assert text == "done"
    assert len(model.calls) == 2
    contents = [m["content"] for m in model.calls[1]["messages"]]
    assert any(c.startswith("Tool reply_to_user failed:") for c in contents)
    assert "Tool get_time failed: Invalid time zone specified: America" in contents
    assert any(c.startswith('Tool get_time executed with result: {"timezone": "UTC"') for c in contents)
    assert ctx.message.replies == []


def test_unknown_tool_is_fed_back_to_the_model(tmp_path: Path) -> None:
    model = _ScriptedModel(
        [
            ModelReply(content="", tool_calls=(ToolCall(id="a", name="launch_rocket", arguments="{}"),)),
            ModelReply(content="can't do that"),
        ]
    )
    orchestrator = _orchestrator(tmp_path, model)

    text = asyncio.run(orchestrator.run((ChatTurn("user", "hi"),), _ctx()))

    assert text == "can't do that"
    assert model.calls[1]["messages"][-1] == {"role": "system", "content": "Tool launch_rocket failed: Unknown tool: launch_rocket"}


def test_strip_leading_mention() -> None:
    assert strip_leading_mention("<@99> hello there", 99) == "hello there"
    assert strip_leading_mention("<@!99>hi", 99) == "hi"
    assert strip_leading_mention("hi <@99>", 99) == "hi <@99>"


def test_dialogue_service_replies_and_records_both_turns(tmp_path: Path) -> None:
    model = _ScriptedModel([ModelReply(content="hey ana")])
    service, history = _wire(tmp_path, model)
    message = _FakeMessage("<@99> hi")
    client = SimpleNamespace(user=SimpleNamespace(id=99))

    asyncio.run(service.handle(message, client))

    assert message.replies == ["hey ana" + REPLY_SUFFIX]
    rows = asyncio.run(history.fetch_recent("42", "555"))
    assert [(row["role"], row["content"]) for row in rows] == [("user", "hi"), ("assistant", "hey ana")]
    # the persisted inbound turn is not duplicated in the prompt
    assert [m["content"] for m in model.calls[0]["messages"][1:]] == ["hi"]


def test_dialogue_service_uses_fallback_on_model_failure(tmp_path: Path) -> None:
    model = _ScriptedModel([UpstreamFailure("No response from model")])
    service, _ = _wire(tmp_path, model)
    message = _FakeMessage("hi")

    asyncio.run(service.handle(message, SimpleNamespace(user=SimpleNamespace(id=99))))

    assert message.replies == ["my head hurts"]


def test_dialogue_service_stays_silent_after_reply_tool_with_empty_final_text(tmp_path: Path) -> None:
    model = _ScriptedModel(
        [
            ModelReply(content="", tool_calls=(ToolCall(id="a", name="reply_to_user", arguments='{"messages": "oi"}'),)),
            ModelReply(content=""),
        ]
    )
    service, history = _wire(tmp_path, model)
    message = _FakeMessage("hi")

    asyncio.run(service.handle(message, SimpleNamespace(user=SimpleNamespace(id=99))))

    assert message.replies == ["oi"]
    rows = asyncio.run(history.fetch_recent("42", "555"))
    assert [(row["role"], row["content"]) for row in rows] == [("user", "hi"), ("assistant", "oi")]


def test_dialogue_service_splits_long_replies(tmp_path: Path) -> None:
    long_text = "\n".join(["x" * 100] * 30)
    model = _ScriptedModel([ModelReply(content=long_text)])
    service, _ = _wire(tmp_path, model)
    message = _FakeMessage("hi")

    asyncio.run(service.handle(message, SimpleNamespace(user=SimpleNamespace(id=99))))

    assert len(message.replies) == 1
    assert message.channel.sent
    assert all(len(chunk) <= 1900 for chunk in message.replies + message.channel.sent)


def test_persona_prompt_falls_back_when_file_missing(tmp_path: Path) -> None:
    assert load_persona_prompt(tmp_path / "missing.txt") == DEFAULT_PERSONA_PROMPT

    prompt_path = tmp_path / "prompt.txt"
    prompt_path.write_text("\ufeffYou are Weyra.\n", encoding="utf-8")
    assert load_persona_prompt(prompt_path) == "You are Weyra."


@pytest.mark.parametrize("content", ["", "   "])
def test_persona_prompt_falls_back_when_file_empty(tmp_path: Path, content: str) -> None:
    prompt_path = tmp_path / "prompt.txt"
    prompt_path.write_text(content, encoding="utf-8")

    assert load_persona_prompt(prompt_path) == DEFAULT_PERSONA_PROMPT
