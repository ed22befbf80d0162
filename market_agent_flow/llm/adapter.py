"""Model-facing types used by the market research agents.

`Agent.run` sends `Message` lists through an `LLMAdapter` and executes the
`ToolCall`s it gets back (market data, news search, analysis) until the
model answers in plain text. `ConversationMemory` keeps each run's prompt
and answer as JSON between sessions, so `Message` round-trips through plain
dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..tools import ToolSpec


@dataclass
class ToolCall:
    """One toolkit invocation the model asked for, e.g. `get_crypto_data(crypto_id="bitcoin")`.

    `id` is echoed back as `Message.tool_call_id` on the tool result.
    """

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class Message:
    """One turn of an agent conversation: system, user, assistant or tool result."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [
                {"id": tc.id, "name": tc.name, "arguments": tc.arguments} for tc in self.tool_calls
            ]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        tool_calls = None
        if data.get("tool_calls"):
            tool_calls = [ToolCall(**tc) for tc in data["tool_calls"]]
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
        )


@dataclass
class LLMResponse:
    """Model reply; the agent loop stops once `tool_calls` is empty."""

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None
    usage: dict[str, int] = field(default_factory=dict)


@runtime_checkable
class LLMAdapter(Protocol):
    """Chat backend for `Agent`.

    `format_tools` turns the agent's registered toolkit functions into the
    backend's tool schema once per run. `chat` is then called once per
    tool-calling round with the full conversation so far.
    `OpenAIAdapter` covers OpenAI and OpenAI-compatible endpoints; tests
    use a scripted fake.
    """

    def chat(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMResponse: ...

    def format_tools(self, tools: list[ToolSpec]) -> list[dict[str, Any]]: ...
