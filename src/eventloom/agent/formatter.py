"""Builds the message list sent to the model on each ReAct iteration."""

from __future__ import annotations

from typing import Iterable, Sequence

from eventloom.agent.prompts import (
    CONTEXT_PROMPT,
    CONTEXT_REACT_SYSTEM_HEADER,
    REACT_SYSTEM_HEADER,
    TOOL_DESCRIPTION,
    fill,
)
from eventloom.agent.types import ReasoningStep, ReasoningStepType
from eventloom.llm.base import ChatMessage, Role
from eventloom.tools.registry import Tool


def tool_descriptions(tools: Iterable[Tool]) -> list[str]:
    return [
        TOOL_DESCRIPTION.format(
            name=tool.metadata.name,
            description=tool.metadata.description,
            args=tool.metadata.parameters_json(),
        )
        for tool in tools
    ]


class ReActChatFormatter:
    """System header + chat history + the current reasoning trace.

    Reasoning steps become assistant messages, except observations, which are
    sent with ``observation_role`` (user by default).
    """

    def __init__(
        self,
        system_header: str = REACT_SYSTEM_HEADER,
        context: str = "",
        observation_role: Role = "user",
    ) -> None:
        self.system_header = system_header
        self.context = context
        self.observation_role = observation_role

    @classmethod
    def from_defaults(
        cls,
        system_header: str | None = None,
        context: str = "",
        observation_role: Role = "user",
    ) -> ReActChatFormatter:
        """Pick the context-aware header when ``context`` is given and no header is."""

        if system_header is None:
            system_header = CONTEXT_REACT_SYSTEM_HEADER if context else REACT_SYSTEM_HEADER
        return cls(system_header=system_header, context=context, observation_role=observation_role)

    def system_prompt(self, tools: Sequence[Tool]) -> str:
        return fill(
            self.system_header,
            tool_desc="\n".join(tool_descriptions(tools)),
            tool_names=", ".join(tool.metadata.name for tool in tools),
            context=self.context,
            context_prompt=fill(CONTEXT_PROMPT, context=self.context) if self.context else "",
        )

    def format(
        self,
        tools: Sequence[Tool],
        chat_history: Sequence[ChatMessage],
        current_reasoning: Sequence[ReasoningStep],
    ) -> list[ChatMessage]:
        messages = [ChatMessage(role="system", content=self.system_prompt(tools))]
        messages.extend(chat_history)
        for step in current_reasoning:
            role: Role = self.observation_role if step.step_type is ReasoningStepType.OBSERVATION else "assistant"
            messages.append(ChatMessage(role=role, content=step.content))
        return messages
