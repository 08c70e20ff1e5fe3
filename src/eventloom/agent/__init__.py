"""Agents."""

from __future__ import annotations

from eventloom.agent.base import BaseAgent
from eventloom.agent.errors import (
    AgentError,
    MaxIterationsError,
    OutputParseError,
    ToolCallingNotSupportedError,
    ToolNotFoundError,
)
from eventloom.agent.formatter import ReActChatFormatter
from eventloom.agent.output_parser import (
    ReActOutputParser,
    extract_final_response,
    extract_json_str,
    extract_tool_use,
    parse_action_input,
)
from eventloom.agent.react import (
    FunctionCallingReActAgent,
    ReActAgent,
    SimpleAgent,
    clean_response,
    get_agent_for_llm,
)
from eventloom.agent.types import (
    ActionReasoningStep,
    AgentChatResponse,
    AgentState,
    ObservationReasoningStep,
    ReasoningStep,
    ReasoningStepType,
    ResponseReasoningStep,
    ToolCallResult,
)
from eventloom.agent.workflow_agent import AgentWorkflow, LLMInputEvent, ToolCallEvent, ToolResultEvent

__all__ = [
    "BaseAgent",
    "ReActAgent",
    "FunctionCallingReActAgent",
    "SimpleAgent",
    "get_agent_for_llm",
    "clean_response",
    "AgentWorkflow",
    "LLMInputEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "ReActChatFormatter",
    "ReActOutputParser",
    "extract_final_response",
    "extract_json_str",
    "extract_tool_use",
    "parse_action_input",
    "ActionReasoningStep",
    "ObservationReasoningStep",
    "ResponseReasoningStep",
    "ReasoningStep",
    "ReasoningStepType",
    "ToolCallResult",
    "AgentChatResponse",
    "AgentState",
    "AgentError",
    "OutputParseError",
    "ToolNotFoundError",
    "MaxIterationsError",
    "ToolCallingNotSupportedError",
]
