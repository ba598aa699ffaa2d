from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from ..memory.history import ConversationHistory
from ..prompts.dialogue import build_system_prompt


@dataclass(frozen=True, slots=True)
class ChatTurn:
    role: str
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class InboundTurn:
    user_id: str
    user_name: str
    channel_id: str
    channel_name: str | None
    server_name: str | None
    content: str


def assemble_conversation(
    system_prompt: str,
    history: Iterable[Mapping[str, object]],
    inbound_text: str,
) -> Tuple[ChatTurn, ...]:
    turns = [ChatTurn(role="system", content=system_prompt)]
    last_content: str | None = None
    for row in history:
        content = str(row.get("content", ""))
        turns.append(ChatTurn(role=str(row.get("role", "user")), content=content))
        last_content = content

    # Raw string equality: the inbound turn is usually already persisted before the fetch.
    if last_content is None or last_content != inbound_text:
        turns.append(ChatTurn(role="user", content=inbound_text))
    return tuple(turns)


class ContextBuilder:
    def __init__(
        self,
        history: ConversationHistory,
        persona_prompt: str,
        tool_summaries: Sequence[Tuple[str, str]],
        fetch_limit: int = 8,
    ) -> None:
        self.history = history
        self.persona_prompt = persona_prompt
        self.tool_summaries = tuple(tool_summaries)
        self.fetch_limit = max(1, int(fetch_limit))

    def system_prompt_for(self, inbound: InboundTurn) -> str:
        return build_system_prompt(
            self.persona_prompt,
            user_name=inbound.user_name,
            user_id=inbound.user_id,
            server_name=inbound.server_name,
            channel_name=inbound.channel_name,
            tool_summaries=self.tool_summaries,
        )

    async def build(self, inbound: InboundTurn) -> Tuple[ChatTurn, ...]:
        rows = await self.history.fetch_recent(inbound.user_id, inbound.channel_id, self.fetch_limit)
        return assemble_conversation(self.system_prompt_for(inbound), rows, inbound.content)
