"""Tool abstractions and registry.

A tool exposes metadata (name, description, JSON schema of its arguments and
the ``return_direct`` flag) and an async ``call``. Tool failures are reported
as error outputs rather than raised, so an agent can show them to the model.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import typing
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator

from pydantic import BaseModel, Field

from eventloom.llm.base import ToolSpec
from eventloom.logging import get_logger

logger = get_logger(__name__)


def default_parameters() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"input": {"title": "input query string", "type": "string"}},
        "required": ["input"],
    }


class ToolMetadata(BaseModel):
    """What a model is told about a tool."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=default_parameters)
    return_direct: bool = False

    def parameters_json(self) -> str:
        return json.dumps(self.parameters or default_parameters(), ensure_ascii=False)

    def to_spec(self) -> ToolSpec:
        return ToolSpec(name=self.name, description=self.description, parameters=self.parameters)


class ToolOutput(BaseModel):
    """Result from a tool execution."""

    content: str = ""
    tool_name: str = ""
    raw_input: dict[str, Any] = Field(default_factory=dict)
    raw_output: Any = None
    is_error: bool = False

    @classmethod
    def error(cls, tool_name: str, exc: BaseException | str, raw_input: dict[str, Any] | None = None) -> ToolOutput:
        return cls(content=str(exc), tool_name=tool_name, raw_input=dict(raw_input or {}), is_error=True)

    def __str__(self) -> str:
        return self.content


class Tool(ABC):
    """Base class for tools."""

    @property
    @abstractmethod
    def metadata(self) -> ToolMetadata:
        """Tool metadata."""

    @property
    def name(self) -> str:
        return self.metadata.name

    @abstractmethod
    async def call(self, arguments: dict[str, Any]) -> ToolOutput:
        """Execute the tool.

        Args:
            arguments: Decoded tool arguments.

        Returns:
            ToolOutput with the execution result.
        """


_JSON_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    dict: "object",
    list: "array",
}


def _json_type(annotation: Any) -> str:
    origin = typing.get_origin(annotation) or annotation
    return _JSON_TYPES.get(origin, "string")


def infer_parameters(func: Callable[..., Any]) -> dict[str, Any]:
    """Infer a JSON schema from a function signature."""

    sig = inspect.signature(func)
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    properties: dict[str, Any] = {}
    required: list[str] = []
    for param_name, param in sig.parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param_name] = {"type": _json_type(hints.get(param_name, str))}
        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    return {"type": "object", "properties": properties, "required": required}


def _first_line(doc: str | None) -> str:
    return (inspect.cleandoc(doc).splitlines() or [""])[0] if doc else ""


class FunctionTool(Tool):
    """Tool wrapper for a Python function, sync or async."""

    def __init__(
        self,
        func: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        parameters: dict[str, Any] | None = None,
        return_direct: bool = False,
    ) -> None:
        """Initialize function tool.

        Args:
            func: Python function to wrap. It is called with the tool arguments as keywords.
            name: Tool name, defaults to the function name.
            description: Tool description, defaults to the docstring's first line.
            parameters: Optional JSON schema for arguments.
            return_direct: Whether a successful result ends the agent turn.
        """
        tool_name = name or func.__name__
        self._func = func
        self._metadata = ToolMetadata(
            name=tool_name,
            description=description or _first_line(func.__doc__) or f"Function: {tool_name}",
            parameters=parameters or infer_parameters(func),
            return_direct=return_direct,
        )

    @property
    def metadata(self) -> ToolMetadata:
        return self._metadata

    async def call(self, arguments: dict[str, Any]) -> ToolOutput:
        """Execute the wrapped function."""
        try:
            if inspect.iscoroutinefunction(self._func):
                result = await self._func(**arguments)
            else:
                result = await asyncio.to_thread(self._func, **arguments)
        except Exception as e:  # noqa: BLE001
            logger.warning("Tool execution failed", extra={"tool": self.name, "error": str(e)})
            return ToolOutput.error(self.name, e, arguments)

        if isinstance(result, ToolOutput):
            return result
        return ToolOutput(
            content=result if isinstance(result, str) else json.dumps(result, ensure_ascii=False, default=str),
            tool_name=self.name,
            raw_input=dict(arguments),
            raw_output=result,
        )


class ToolRegistry:
    """Registry of tools, unique by name."""

    def __init__(self, tools: typing.Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise ValueError(f"tool {tool.name!r} is already registered")
        self._tools[tool.name] = tool
        logger.debug("Tool registered", extra={"tool": tool.name})

    def register_function(self, func: Callable[..., Any], **kwargs: Any) -> FunctionTool:
        """Register a function as a tool; keyword arguments go to :class:`FunctionTool`."""

        tool = FunctionTool(func, **kwargs)
        self.register(tool)
        return tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list(self) -> list[Tool]:  # noqa: A003
        return list(self._tools.values())

    def metadata(self) -> list[ToolMetadata]:
        return [tool.metadata for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)
