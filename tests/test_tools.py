"""Tests for the tool system."""

from typing import Literal

import pytest

from market_agent_flow.tools import ToolRegistry, ToolSpec


def sample_tool(query: str, count: int = 5) -> str:
    """Search for something.

    Longer explanation that should not end up in the description.
    """
    return f"Found {count} results for {query}"


def typed_tool(
    symbols: list[str],
    mode: Literal["quick", "detailed"] = "quick",
    limit: int | None = None,
    ratio: float = 0.5,
    verbose: bool = False,
) -> dict:
    return {"symbols": symbols, "mode": mode}


class TestToolSpec:
    def test_from_callable(self):
        spec = ToolSpec.from_callable(sample_tool)
        assert spec.name == "sample_tool"
        assert spec.description == "Search for something."
        assert spec.parameters["type"] == "object"
        assert spec.parameters["properties"]["query"] == {"type": "string"}
        assert spec.parameters["properties"]["count"] == {"type": "integer", "default": 5}
        assert spec.parameters["required"] == ["query"]

    def test_custom_name_and_description(self):
        spec = ToolSpec.from_callable(sample_tool, name="search", description="Custom desc")
        assert spec.name == "search"
        assert spec.description == "Custom desc"

    def test_schema_types(self):
        props = ToolSpec.from_callable(typed_tool).parameters["properties"]
        assert props["symbols"] == {"type": "array", "items": {"type": "string"}}
        assert props["mode"] == {"type": "string", "enum": ["quick", "detailed"], "default": "quick"}
        assert props["limit"] == {"type": "integer", "default": None}
        assert props["ratio"]["type"] == "number"
        assert props["verbose"]["type"] == "boolean"

    def test_missing_docstring_gets_placeholder(self):
        spec = ToolSpec.from_callable(typed_tool)
        assert spec.description == "Tool: typed_tool"

    def test_to_openai_schema(self):
        spec = ToolSpec.from_callable(sample_tool)
        schema = spec.to_openai_schema()
        assert schema["type"] == "function"
        assert schema["function"]["name"] == "sample_tool"
        assert schema["function"]["parameters"] is spec.parameters

    def test_execute(self):
        spec = ToolSpec.from_callable(sample_tool)
        result = spec.execute({"query": "test", "count": 3})
        assert result == "Found 3 results for test"


class TestToolRegistry:
    def test_register_and_get(self):
        registry = ToolRegistry()
        registry.register(sample_tool)
        spec = registry.get("sample_tool")
        assert spec is not None
        assert spec.name == "sample_tool"
        assert "sample_tool" in registry

    def test_register_spec_instance(self):
        spec = ToolSpec.from_callable(sample_tool, name="search")
        registry = ToolRegistry([spec])
        assert registry.get("search") is spec
        assert len(registry) == 1

    def test_instance_isolation(self):
        r1 = ToolRegistry()
        r2 = ToolRegistry()
        r1.register(sample_tool)
        assert r1.get("sample_tool") is not None
        assert r2.get("sample_tool") is None

    def test_execute_by_name(self):
        registry = ToolRegistry()
        registry.register(sample_tool)
        result = registry.execute("sample_tool", {"query": "hello"})
        assert "hello" in result

    def test_execute_missing_tool(self):
        registry = ToolRegistry()
        with pytest.raises(KeyError, match="not_found"):
            registry.execute("not_found", {})

    def test_list_tools(self):
        registry = ToolRegistry()
        registry.register(sample_tool)
        registry.register(typed_tool)
        assert [t.name for t in registry.list_tools()] == ["sample_tool", "typed_tool"]

    def test_openai_schemas(self):
        registry = ToolRegistry()
        registry.register(sample_tool)
        schemas = registry.to_openai_schemas()
        assert len(schemas) == 1
        assert schemas[0]["type"] == "function"
