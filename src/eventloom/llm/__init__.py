"""Language model interfaces and the OpenAI client."""

from __future__ import annotations

from eventloom.llm.base import (
    LLM,
    ChatMessage,
    Role,
    ToolCall,
    ToolCallingLLM,
    ToolCallingResponse,
    ToolSpec,
    assistant_message,
    supports_tool_calling,
    system_message,
    tool_message,
    user_message,
)
from eventloom.llm.client import LLMError, OpenAILLM

__all__ = [
    "LLM",
    "ToolCallingLLM",
    "ChatMessage",
    "Role",
    "ToolCall",
    "ToolCallingResponse",
    "ToolSpec",
    "assistant_message",
    "system_message",
    "tool_message",
    "user_message",
    "supports_tool_calling",
    "LLMError",
    "OpenAILLM",
]
