"""Base agent: model, tools, memory and turn state."""

from __future__ import annotations

import itertools
from typing import Any, AsyncIterator, Iterable, Sequence

from eventloom.agent.errors import ToolNotFoundError
from eventloom.agent.types import AgentChatResponse, AgentState, ToolCallResult
from eventloom.config import default_settings
from eventloom.llm.base import LLM, ChatMessage
from eventloom.logging import get_logger
from eventloom.memory.buffer import Memory, SimpleMemory
from eventloom.tools.registry import Tool, ToolMetadata, ToolOutput, ToolRegistry

logger = get_logger(__name__)


class BaseAgent:
    """Common plumbing for agents.

    Args:
        llm: Language model.
        tools: Tools the agent may call; names must be unique.
        memory: Conversation memory, a fresh :class:`SimpleMemory` by default.
        system_prompt: Extra instructions for the model.
        max_iterations: Upper bound on model calls per turn.
        name: Agent name, used in logs.
        description: What the agent is for.
    """

    def __init__(
        self,
        llm: LLM,
        tools: Iterable[Tool] = (),
        *,
        memory: Memory | None = None,
        system_prompt: str = "",
        max_iterations: int | None = None,
        name: str = "Agent",
        description: str = "An agent that can perform tasks",
    ) -> None:
        self.llm = llm
        self.memory: Memory = memory if memory is not None else SimpleMemory()
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations or default_settings().agent_max_iterations
        self.name = name
        self.description = description
        self._registry = ToolRegistry(tools)
        self._state = AgentState.IDLE
        self._tool_ids = itertools.count(1)

    # -- tools --------------------------------------------------------------------

    @property
    def tools(self) -> list[Tool]:
        return self._registry.list()

    def add_tool(self, tool: Tool) -> None:
        self._registry.register(tool)

    def remove_tool(self, name: str) -> None:
        self._registry.unregister(name)

    def get_tool(self, name: str) -> Tool | None:
        return self._registry.get(name)

    def tool_metadata(self) -> list[ToolMetadata]:
        return self._registry.metadata()

    async def call_tool(self, name: str, kwargs: dict[str, Any], tool_id: str | None = None) -> ToolCallResult:
        """Invoke a tool by name. Failures come back as error outputs, never raised."""

        tool_id = tool_id or f"call_{next(self._tool_ids)}"
        tool = self.get_tool(name)
        if tool is None:
            logger.warning("Model requested unknown tool", extra={"agent": self.name, "tool": name})
            return ToolCallResult(name, tool_id, kwargs, ToolOutput.error(name, ToolNotFoundError(name), kwargs))

        logger.debug("Calling tool", extra={"agent": self.name, "tool": name, "tool_id": tool_id})
        try:
            output = await tool.call(kwargs)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Tool raised", extra={"agent": self.name, "tool": name, "error": str(exc)})
            output = ToolOutput.error(name, exc, kwargs)
        return ToolCallResult(name, tool_id, kwargs, output, tool.metadata.return_direct)

    # -- state --------------------------------------------------------------------

    @property
    def state(self) -> AgentState:
        return self._state

    def _set_state(self, state: AgentState) -> None:
        self._state = state

    def reset(self) -> None:
        self._state = AgentState.IDLE
        self.memory.reset()

    def chat_history(self) -> list[ChatMessage]:
        return self.memory.get_all()

    # -- chat ---------------------------------------------------------------------

    async def chat(self, message: str) -> AgentChatResponse:
        return await self.chat_with_history(message, self.memory.get_all())

    async def chat_with_history(self, message: str, chat_history: Sequence[ChatMessage]) -> AgentChatResponse:
        raise NotImplementedError

    async def stream_chat(self, message: str) -> AsyncIterator[str]:
        """Yield the turn's answer once it is known."""

        response = await self.chat(message)
        yield response.response

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, tools={self._registry.names()!r})"
