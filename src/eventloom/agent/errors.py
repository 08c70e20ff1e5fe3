"""Agent errors."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for agent failures."""


class OutputParseError(AgentError, ValueError):
    """The model's reply matched neither the tool-call nor the answer frame."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class ToolNotFoundError(AgentError, LookupError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"tool not found: {name}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class MaxIterationsError(AgentError):
    """The function-calling loop ran out of iterations without an answer."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(f"max iterations ({max_iterations}) reached")
        self.max_iterations = max_iterations


class ToolCallingNotSupportedError(AgentError, TypeError):
    """The configured model cannot return structured tool calls."""
