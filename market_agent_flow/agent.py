"""Tool-calling agents."""

from __future__ import annotations

import json
import logging
from typing import Any

from .llm.adapter import LLMAdapter, Message
from .memory import ConversationMemory
from .tools import ToolRegistry, ToolSpec

logger = logging.getLogger(__name__)


def _tool_content(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class Agent:
    """An LLM with instructions, a set of tools and optional persistent memory.

    Usage:
        agent = Agent(
            name="market-analyst",
            instructions="You analyse stocks...",
            llm=OpenAIAdapter(model="gpt-4o"),
            tools=[stock_tool, analysis_tool],
        )
        answer = agent.run("How is NVDA doing?")

    With memory, earlier turns of the same session (user prompts and final
    answers) are replayed before the new prompt.
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        llm: LLMAdapter,
        tools: list[ToolSpec] | None = None,
        memory: ConversationMemory | None = None,
        *,
        max_iterations: int = 10,
        temperature: float = 0.7,
        history_limit: int = 20,
    ):
        self.name = name
        self.instructions = instructions
        self.llm = llm
        self.registry = ToolRegistry(list(tools or []))
        self.memory = memory
        self.max_iterations = max_iterations
        self.temperature = temperature
        self.history_limit = history_limit

    @property
    def tool_names(self) -> list[str]:
        return [t.name for t in self.registry.list_tools()]

    def run(self, prompt: str, session_id: str = "default") -> str:
        """Run the tool-use loop: call the model, execute tools, repeat until it answers.

        Returns the final text content.
        """
        history: list[Message] = []
        if self.memory is not None:
            history = self.memory.load(self.name, session_id)[-self.history_limit :]

        messages: list[Message] = [
            Message(role="system", content=self.instructions),
            *history,
            Message(role="user", content=prompt),
        ]
        tools = self.llm.format_tools(self.registry.list_tools()) if len(self.registry) else None

        answer = ""
        for _ in range(self.max_iterations):
            response = self.llm.chat(messages, tools=tools, temperature=self.temperature)
            answer = response.content or ""

            if not response.tool_calls:
                break

            messages.append(
                Message(role="assistant", content=response.content, tool_calls=response.tool_calls)
            )

            for tc in response.tool_calls:
                logger.info("%s: calling tool %s", self.name, tc.name)
                try:
                    result = self.registry.execute(tc.name, tc.arguments)
                    content = _tool_content(result)
                except Exception as e:
                    logger.warning("%s: tool %s failed: %s", self.name, tc.name, e)
                    content = f"Error: {e}"
                messages.append(
                    Message(role="tool", content=content, tool_call_id=tc.id, name=tc.name)
                )
        else:
            logger.warning("%s: stopped after %d iterations", self.name, self.max_iterations)

        if self.memory is not None:
            self.memory.append(
                self.name,
                session_id,
                Message(role="user", content=prompt),
                Message(role="assistant", content=answer),
            )
        return answer
