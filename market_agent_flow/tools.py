"""Tool specs: named callables with a JSON-schema parameter description."""

from __future__ import annotations

import inspect
import typing
from dataclasses import dataclass, field
from typing import Any, Callable

_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


def _json_schema_for(annotation: Any) -> dict[str, Any]:
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {}

    origin = typing.get_origin(annotation)
    args = [a for a in typing.get_args(annotation) if a is not type(None)]

    if origin is typing.Literal:
        return {"type": _JSON_TYPES.get(type(args[0]), "string"), "enum": list(args)}
    if origin in (list, tuple, set):
        schema: dict[str, Any] = {"type": "array"}
        if args:
            schema["items"] = _json_schema_for(args[0])
        return schema
    if origin is dict:
        return {"type": "object"}
    if origin is not None and len(args) == 1:
        # Optional[X] / X | None
        return _json_schema_for(args[0])
    return {"type": _JSON_TYPES.get(annotation, "string")}


@dataclass
class ToolSpec:
    """A tool the agent's LLM can call."""

    name: str
    description: str
    parameters: dict[str, Any]
    func: Callable[..., Any] = field(repr=False)

    @classmethod
    def from_callable(
        cls,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> ToolSpec:
        """Build a ToolSpec from a function's signature, type hints and docstring."""
        try:
            hints = typing.get_type_hints(func)
        except (NameError, TypeError):
            hints = {}

        properties: dict[str, Any] = {}
        required: list[str] = []
        for pname, param in inspect.signature(func).parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            prop = _json_schema_for(hints.get(pname, param.annotation))
            if param.default is inspect.Parameter.empty:
                required.append(pname)
            else:
                prop["default"] = param.default
            properties[pname] = prop

        doc = inspect.getdoc(func) or ""
        return cls(
            name=name or func.__name__,
            description=description or (doc.split("\n\n")[0].strip() if doc else f"Tool: {func.__name__}"),
            parameters={"type": "object", "properties": properties, "required": required},
            func=func,
        )

    def execute(self, arguments: dict[str, Any]) -> Any:
        return self.func(**arguments)

    def to_openai_schema(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolRegistry:
    """Per-instance collection of tools, looked up by name."""

    def __init__(self, tools: list[ToolSpec | Callable] | None = None):
        self._tools: dict[str, ToolSpec] = {}
        for t in tools or []:
            self.register(t)

    def register(self, tool: ToolSpec | Callable, **kwargs) -> ToolSpec:
        spec = tool if isinstance(tool, ToolSpec) else ToolSpec.from_callable(tool, **kwargs)
        self._tools[spec.name] = spec
        return spec

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def execute(self, name: str, arguments: dict[str, Any]) -> Any:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Tool '{name}' not found")
        return spec.execute(arguments)

    def list_tools(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def to_openai_schemas(self) -> list[dict[str, Any]]:
        return [t.to_openai_schema() for t in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
