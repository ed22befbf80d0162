"""OpenAI-compatible chat adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..errors import ConfigurationError
from ..tools import ToolSpec
from .adapter import LLMResponse, Message, ToolCall

logger = logging.getLogger(__name__)


class OpenAIAdapter:
    """Chat completions over the openai SDK; works with any compatible base_url."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        base_url: str | None = None,
        **kwargs,
    ):
        try:
            import openai
        except ImportError:
            raise ImportError("Install openai: pip install 'market-agent-flow'")
        self.model = model
        self._client = openai.OpenAI(api_key=api_key, base_url=base_url, **kwargs)

    @classmethod
    def from_settings(cls, settings) -> OpenAIAdapter:
        if not settings.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is not set")
        return cls(
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )

    def format_tools(self, tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [t.to_openai_schema() for t in tools]

    def chat(
        self,
        messages: list[Message],
        *,
        tools: list[dict[str, Any]] | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": [self._convert_message(m) for m in messages],
            "temperature": temperature,
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = tools

        logger.debug("chat: model=%s messages=%d tools=%d", self.model, len(messages), len(tools or []))
        response = self._client.chat.completions.create(**kwargs)
        choice = response.choices[0]

        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=json.loads(tc.function.arguments or "{}"),
            )
            for tc in choice.message.tool_calls or []
        ]

        usage = {}
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
            usage=usage,
        )

    @staticmethod
    def _convert_message(m: Message) -> dict[str, Any]:
        msg: dict[str, Any] = {"role": m.role}
        if m.content is not None:
            msg["content"] = m.content
        if m.tool_calls:
            msg["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in m.tool_calls
            ]
        if m.tool_call_id is not None:
            msg["tool_call_id"] = m.tool_call_id
        if m.name is not None:
            msg["name"] = m.name
        return msg
