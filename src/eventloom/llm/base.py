"""Message types and the interfaces a language model must provide."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Literal, Mapping, Protocol, Sequence, runtime_checkable

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model. ``arguments`` is raw JSON text."""

    id: str  # noqa: A003
    name: str
    arguments: str = "{}"

    def parse_arguments(self) -> dict[str, Any]:
        """Decode ``arguments``; an empty string decodes to ``{}``."""

        if not self.arguments.strip():
            return {}
        data = json.loads(self.arguments)
        if not isinstance(data, dict):
            raise ValueError(f"tool call {self.name!r} arguments are not a JSON object")
        return data

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None

    def to_openai(self) -> dict[str, Any]:
        """Render as an OpenAI Chat Completions message dict."""

        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            out["tool_calls"] = [tc.to_openai() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            out["tool_call_id"] = self.tool_call_id
        if self.name is not None and self.role != "tool":
            out["name"] = self.name
        return out

    @staticmethod
    def from_dicts(messages: Sequence[Mapping[str, Any]]) -> list[ChatMessage]:
        """Convert plain dict messages to ChatMessage."""

        return [ChatMessage(role=m["role"], content=m.get("content") or "") for m in messages]


def system_message(content: str) -> ChatMessage:
    return ChatMessage(role="system", content=content)


def user_message(content: str) -> ChatMessage:
    return ChatMessage(role="user", content=content)


def assistant_message(content: str, tool_calls: Sequence[ToolCall] = ()) -> ChatMessage:
    return ChatMessage(role="assistant", content=content, tool_calls=tuple(tool_calls))


def tool_message(content: str, tool_call_id: str, name: str | None = None) -> ChatMessage:
    return ChatMessage(role="tool", content=content, tool_call_id=tool_call_id, name=name)


@dataclass(frozen=True)
class ToolSpec:
    """A tool as advertised to a model with native tool calling."""

    name: str
    description: str
    parameters: dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})

    def to_openai_tool(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolCallingResponse:
    """Reply of a tool-calling chat round."""

    text: str = ""
    message: ChatMessage | None = None

    @property
    def tool_calls(self) -> tuple[ToolCall, ...]:
        return self.message.tool_calls if self.message is not None else ()


@runtime_checkable
class LLM(Protocol):
    """Minimal language model interface used by agents."""

    async def complete(self, prompt: str) -> str: ...

    async def chat(self, messages: Sequence[ChatMessage]) -> str: ...

    def stream(self, prompt: str) -> AsyncIterator[str]: ...


@runtime_checkable
class ToolCallingLLM(LLM, Protocol):
    """A model that can return structured tool calls."""

    def supports_tool_calling(self) -> bool: ...

    async def chat_with_tools(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        options: Mapping[str, Any] | None = None,
    ) -> ToolCallingResponse: ...


def supports_tool_calling(llm: object) -> bool:
    """True if ``llm`` implements tool calling and says it is enabled."""

    check = getattr(llm, "supports_tool_calling", None)
    return callable(check) and callable(getattr(llm, "chat_with_tools", None)) and bool(check())
