"""Shared test doubles: scripted language models and small tools."""

from __future__ import annotations

from typing import Any, AsyncIterator, Mapping, Sequence

import pytest

from eventloom.llm.base import ChatMessage, ToolCallingResponse, ToolSpec, user_message
from eventloom.tools.registry import FunctionTool


class MockLLM:
    """Chat model that returns scripted replies in order."""

    def __init__(self, replies: Sequence[str] = (), default: str | None = None) -> None:
        self._replies = list(replies)
        self.default = default
        self.calls: list[list[ChatMessage]] = []

    async def complete(self, prompt: str) -> str:
        return await self.chat([user_message(prompt)])

    async def chat(self, messages: Sequence[ChatMessage]) -> str:
        self.calls.append(list(messages))
        if self._replies:
            return self._replies.pop(0)
        if self.default is not None:
            return self.default
        raise AssertionError("MockLLM ran out of replies")

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        yield await self.complete(prompt)


class MockToolCallingLLM(MockLLM):
    """Tool-calling model that returns scripted responses in order."""

    def __init__(
        self,
        responses: Sequence[ToolCallingResponse] = (),
        default: ToolCallingResponse | None = None,
    ) -> None:
        super().__init__()
        self._responses = list(responses)
        self.default_response = default
        self.tools_seen: list[list[ToolSpec]] = []

    def supports_tool_calling(self) -> bool:
        return True

    async def chat_with_tools(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        options: Mapping[str, Any] | None = None,
    ) -> ToolCallingResponse:
        self.calls.append(list(messages))
        self.tools_seen.append(list(tools))
        if self._responses:
            return self._responses.pop(0)
        if self.default_response is not None:
            return self.default_response
        raise AssertionError("MockToolCallingLLM ran out of responses")


def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


def done(text: str) -> str:
    """Finish with the given text."""
    return text


def explode(reason: str) -> str:
    """Always fails."""
    raise RuntimeError(reason)


@pytest.fixture()
def add_tool() -> FunctionTool:
    return FunctionTool(add)


@pytest.fixture()
def done_tool() -> FunctionTool:
    return FunctionTool(done, return_direct=True)


@pytest.fixture()
def explode_tool() -> FunctionTool:
    return FunctionTool(explode, return_direct=True)


@pytest.fixture()
def scripted_llm() -> type[MockLLM]:
    return MockLLM


@pytest.fixture()
def scripted_tool_llm() -> type[MockToolCallingLLM]:
    return MockToolCallingLLM
