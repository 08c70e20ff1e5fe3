"""Agent data types: reasoning steps, tool call results and responses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from eventloom.tools.registry import ToolOutput


class AgentState(str, Enum):
    """Where an agent is in its current turn."""

    IDLE = "idle"
    RUNNING = "running"
    WAITING_FOR_TOOL = "waiting_for_tool"
    COMPLETED = "completed"
    ERROR = "error"


class ReasoningStepType(str, Enum):
    ACTION = "action"
    OBSERVATION = "observation"
    RESPONSE = "response"


def dump_action_input(action_input: dict[str, Any]) -> str:
    """Compact, key-sorted JSON as shown to the model."""

    return json.dumps(action_input, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


@dataclass(frozen=True)
class ActionReasoningStep:
    """The model decided to call a tool."""

    thought: str
    action: str
    action_input: dict[str, Any] = field(default_factory=dict)

    step_type = ReasoningStepType.ACTION

    @property
    def content(self) -> str:
        return f"Thought: {self.thought}\nAction: {self.action}\nAction Input: {dump_action_input(self.action_input)}"

    @property
    def is_done(self) -> bool:
        return False


@dataclass(frozen=True)
class ObservationReasoningStep:
    """A tool's output fed back to the model."""

    observation: str
    return_direct: bool = False

    step_type = ReasoningStepType.OBSERVATION

    @property
    def content(self) -> str:
        return f"Observation: {self.observation}"

    @property
    def is_done(self) -> bool:
        return self.return_direct


@dataclass(frozen=True)
class ResponseReasoningStep:
    """The model's final answer."""

    thought: str
    response: str
    is_streaming: bool = False

    step_type = ReasoningStepType.RESPONSE

    @property
    def content(self) -> str:
        if self.is_streaming:
            return f"Thought: {self.thought}\nAnswer (Starts With): {self.response} ..."
        return f"Thought: {self.thought}\nAnswer: {self.response}"

    @property
    def is_done(self) -> bool:
        return True


ReasoningStep = Union[ActionReasoningStep, ObservationReasoningStep, ResponseReasoningStep]


@dataclass(frozen=True)
class ToolCallResult:
    """One tool invocation made during a turn."""

    tool_name: str
    tool_id: str
    tool_kwargs: dict[str, Any]
    tool_output: ToolOutput
    return_direct: bool = False


@dataclass
class AgentChatResponse:
    """What one agent turn produced."""

    response: str
    tool_calls: list[ToolCallResult] = field(default_factory=list)
    sources: list[ToolOutput] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.response


def sources_of(tool_calls: list[ToolCallResult]) -> list[ToolOutput]:
    return [tc.tool_output for tc in tool_calls if tc.tool_output is not None]
