"""Tools used by agents."""

from __future__ import annotations

from eventloom.tools.registry import (
    FunctionTool,
    Tool,
    ToolMetadata,
    ToolOutput,
    ToolRegistry,
    default_parameters,
    infer_parameters,
)

__all__ = [
    "Tool",
    "ToolMetadata",
    "ToolOutput",
    "ToolRegistry",
    "FunctionTool",
    "default_parameters",
    "infer_parameters",
]
