"""Tests for agents, conversation memory and the LLM adapter types."""

import json

import pytest

from market_agent_flow.agent import Agent
from market_agent_flow.config import Settings
from market_agent_flow.errors import ConfigurationError
from market_agent_flow.llm.adapter import LLMAdapter, LLMResponse, Message, ToolCall
from market_agent_flow.llm.openai import OpenAIAdapter
from market_agent_flow.memory import ConversationMemory
from market_agent_flow.tools import ToolSpec


# -- Mock LLM --

class MockLLM:
    """Replays scripted responses and records what it was sent."""

    def __init__(self, responses: list[LLMResponse] | None = None):
        self._responses = list(responses or [LLMResponse(content="Mock response")])
        self.calls: list[dict] = []
        self.formatted = 0

    def chat(self, messages, *, tools=None, temperature=0.7, max_tokens=None):
        self.calls.append({"messages": list(messages), "tools": tools})
        idx = min(len(self.calls) - 1, len(self._responses) - 1)
        return self._responses[idx]

    def format_tools(self, tools):
        self.formatted += 1
        return [t.to_openai_schema() for t in tools]


def get_stock_price(symbol: str) -> dict:
    """Get a stock price."""
    return {"symbol": symbol, "current": 123.45}


def failing_tool(symbol: str) -> dict:
    """Always fails."""
    raise RuntimeError("provider down")


def call(name, **arguments):
    return LLMResponse(tool_calls=[ToolCall(id=f"call_{name}", name=name, arguments=arguments)])


# -- Tests --

class TestAgent:
    def test_mock_satisfies_protocol(self):
        assert isinstance(MockLLM(), LLMAdapter)

    def test_plain_answer(self):
        llm = MockLLM([LLMResponse(content="Hello")])
        agent = Agent(name="a", instructions="Be brief", llm=llm)
        assert agent.run("hi") == "Hello"
        sent = llm.calls[0]["messages"]
        assert [m.role for m in sent] == ["system", "user"]
        assert sent[0].content == "Be brief"
        assert llm.calls[0]["tools"] is None

    def test_tool_loop(self):
        llm = MockLLM([call("get_stock_price", symbol="NVDA"), LLMResponse(content="NVDA is at 123.45")])
        agent = Agent(
            name="analyst",
            instructions="Analyse",
            llm=llm,
            tools=[ToolSpec.from_callable(get_stock_price)],
        )
        assert agent.run("How is NVDA?") == "NVDA is at 123.45"
        assert agent.tool_names == ["get_stock_price"]

        second = llm.calls[1]["messages"]
        assert second[-2].role == "assistant"
        assert second[-2].tool_calls[0].name == "get_stock_price"
        tool_msg = second[-1]
        assert tool_msg.role == "tool"
        assert tool_msg.tool_call_id == "call_get_stock_price"
        assert json.loads(tool_msg.content) == {"symbol": "NVDA", "current": 123.45}
        assert llm.calls[0]["tools"][0]["function"]["name"] == "get_stock_price"

    def test_tools_formatted_once_per_run(self):
        llm = MockLLM([
            call("get_stock_price", symbol="NVDA"),
            call("get_stock_price", symbol="TSLA"),
            LLMResponse(content="done"),
        ])
        agent = Agent(name="a", instructions="", llm=llm, tools=[ToolSpec.from_callable(get_stock_price)])
        agent.run("compare")
        assert llm.formatted == 1
        assert len(llm.calls) == 3
        assert llm.calls[0]["tools"] == llm.calls[2]["tools"]

    def test_tool_error_is_reported_to_model(self):
        llm = MockLLM([call("failing_tool", symbol="X"), LLMResponse(content="Sorry")])
        agent = Agent(name="a", instructions="", llm=llm, tools=[ToolSpec.from_callable(failing_tool)])
        assert agent.run("go") == "Sorry"
        assert llm.calls[1]["messages"][-1].content == "Error: provider down"

    def test_unknown_tool_is_reported_to_model(self):
        llm = MockLLM([call("missing"), LLMResponse(content="done")])
        agent = Agent(name="a", instructions="", llm=llm)
        agent.run("go")
        assert "not found" in llm.calls[1]["messages"][-1].content

    def test_iteration_limit(self):
        llm = MockLLM([LLMResponse(content="thinking", tool_calls=[ToolCall("c", "get_stock_price", {"symbol": "A"})])])
        agent = Agent(
            name="a",
            instructions="",
            llm=llm,
            tools=[ToolSpec.from_callable(get_stock_price)],
            max_iterations=3,
        )
        assert agent.run("loop") == "thinking"
        assert len(llm.calls) == 3

    def test_memory_replays_session(self, tmp_path):
        memory = ConversationMemory(tmp_path)
        llm = MockLLM([LLMResponse(content="first"), LLMResponse(content="second")])
        agent = Agent(name="assistant", instructions="sys", llm=llm, memory=memory)

        agent.run("one", session_id="s1")
        agent.run("two", session_id="s1")

        sent = llm.calls[1]["messages"]
        assert [(m.role, m.content) for m in sent] == [
            ("system", "sys"),
            ("user", "one"),
            ("assistant", "first"),
            ("user", "two"),
        ]
        assert len(memory.load("assistant", "s1")) == 4

    def test_sessions_are_isolated(self, tmp_path):
        memory = ConversationMemory(tmp_path)
        llm = MockLLM()
        agent = Agent(name="assistant", instructions="sys", llm=llm, memory=memory)
        agent.run("one", session_id="s1")
        agent.run("two", session_id="s2")
        assert [m.role for m in llm.calls[1]["messages"]] == ["system", "user"]
        assert memory.sessions("assistant") == ["s1", "s2"]


class TestConversationMemory:
    def test_round_trip_with_tool_calls(self, tmp_path):
        memory = ConversationMemory(tmp_path)
        messages = [
            Message(role="user", content="hi"),
            Message(role="assistant", tool_calls=[ToolCall("c1", "get_stock_price", {"symbol": "A"})]),
            Message(role="tool", content="{}", tool_call_id="c1", name="get_stock_price"),
        ]
        memory.save("agent", "s", messages)
        assert ConversationMemory(tmp_path).load("agent", "s") == messages

    def test_missing_session_is_empty(self, tmp_path):
        assert ConversationMemory(tmp_path).load("agent", "nope") == []

    def test_clear(self, tmp_path):
        memory = ConversationMemory(tmp_path)
        memory.append("agent", "s", Message(role="user", content="x"))
        memory.clear("agent", "s")
        assert memory.load("agent", "s") == []

    def test_unsafe_names_stay_inside_directory(self, tmp_path):
        memory = ConversationMemory(tmp_path / "memory")
        memory.append("../evil", "../../x", Message(role="user", content="x"))
        files = list((tmp_path / "memory").rglob("*.json"))
        assert len(files) == 1
        assert not (tmp_path / "x.json").exists()


class TestOpenAIAdapter:
    def test_convert_tool_call_message(self):
        msg = Message(role="assistant", tool_calls=[ToolCall("c1", "search_news", {"query": "btc"})])
        converted = OpenAIAdapter._convert_message(msg)
        assert converted == {
            "role": "assistant",
            "tool_calls": [
                {
                    "id": "c1",
                    "type": "function",
                    "function": {"name": "search_news", "arguments": '{"query": "btc"}'},
                }
            ],
        }

    def test_convert_tool_result(self):
        msg = Message(role="tool", content="ok", tool_call_id="c1", name="search_news")
        assert OpenAIAdapter._convert_message(msg) == {
            "role": "tool",
            "content": "ok",
            "tool_call_id": "c1",
            "name": "search_news",
        }

    def test_from_settings_requires_key(self):
        with pytest.raises(ConfigurationError):
            OpenAIAdapter.from_settings(Settings(_env_file=None, openai_api_key=""))
