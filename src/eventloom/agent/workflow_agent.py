"""The ReAct loop expressed as a workflow, so agent turns can be streamed as events.

Each turn flows through::

    workflow.start -> agent.llm_input -> agent.tool_call -> agent.tool_result -> agent.llm_input ...
                                     \\-> workflow.stop (answer)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from eventloom.agent.errors import AgentError, OutputParseError
from eventloom.agent.react import ReActAgent, clean_response, parse_recovery_message
from eventloom.agent.types import (
    ActionReasoningStep,
    AgentChatResponse,
    ObservationReasoningStep,
    ResponseReasoningStep,
    ToolCallResult,
    sources_of,
)
from eventloom.llm.base import ChatMessage, assistant_message, user_message
from eventloom.logging import get_logger
from eventloom.workflow.context import CancelSignal, RunContext
from eventloom.workflow.engine import EventHook, Workflow
from eventloom.workflow.events import Event, EventFactory, StartEvent, StartEventData, start_event, stop_event
from eventloom.workflow.stream import WorkflowStream

logger = get_logger(__name__)


@dataclass(frozen=True)
class LLMInput:
    iteration: int


@dataclass(frozen=True)
class ToolCallRequest:
    step: ActionReasoningStep
    iteration: int


@dataclass(frozen=True)
class ToolResult:
    result: ToolCallResult
    iteration: int


LLMInputEvent: EventFactory[LLMInput] = EventFactory("agent.llm_input", LLMInput, "llm_input")
ToolCallEvent: EventFactory[ToolCallRequest] = EventFactory("agent.tool_call", ToolCallRequest, "tool_call")
ToolResultEvent: EventFactory[ToolResult] = EventFactory("agent.tool_result", ToolResult, "tool_result")

_HISTORY = "agent.history"
_REASONING = "agent.reasoning"
_TOOL_CALLS = "agent.tool_calls"


class AgentWorkflow:
    """Runs a :class:`ReActAgent`'s turn as a workflow of events.

    The agent supplies the model, tools, memory, formatter and parser; the
    workflow supplies timeout, cancellation, hooks and streaming.
    """

    def __init__(
        self,
        agent: ReActAgent,
        *,
        timeout: float | None = None,
        hooks: Iterable[EventHook] = (),
    ) -> None:
        self.agent = agent
        self.workflow = Workflow(f"agent.{agent.name}", timeout=timeout, hooks=hooks)
        self.workflow.handle_typed(StartEvent, self._on_start)
        self.workflow.handle_typed(LLMInputEvent, self._on_llm_input)
        self.workflow.handle_typed(ToolCallEvent, self._on_tool_call)
        self.workflow.handle_typed(ToolResultEvent, self._on_tool_result)

    @staticmethod
    def start_event(message: str, chat_history: Sequence[ChatMessage] | None = None) -> Event:
        metadata: dict[str, Any] = {}
        if chat_history is not None:
            metadata["chat_history"] = list(chat_history)
        return start_event(message, metadata)

    async def run(
        self,
        message: str,
        *,
        chat_history: Sequence[ChatMessage] | None = None,
        cancel_signal: CancelSignal | None = None,
    ) -> AgentChatResponse:
        result = await self.workflow.run(self.start_event(message, chat_history), cancel_signal=cancel_signal)
        result.raise_for_error()
        response = result.result
        if not isinstance(response, AgentChatResponse):
            raise AgentError("agent workflow ended without an answer")
        return response

    def run_stream(
        self,
        message: str,
        *,
        chat_history: Sequence[ChatMessage] | None = None,
        cancel_signal: CancelSignal | None = None,
    ) -> WorkflowStream:
        return self.workflow.run_stream(self.start_event(message, chat_history), cancel_signal=cancel_signal)

    # -- steps --------------------------------------------------------------------

    async def _on_start(self, ctx: RunContext, data: StartEventData) -> Event:
        agent = self.agent
        history = data.metadata.get("chat_history")
        if history is None:
            history = agent.memory.get_all()
        user = user_message(str(data.input))
        agent.memory.put(user)
        ctx.set(_HISTORY, [*history, user])
        ctx.set(_REASONING, [])
        ctx.set(_TOOL_CALLS, [])
        return LLMInputEvent(LLMInput(iteration=1))

    async def _on_llm_input(self, ctx: RunContext, data: LLMInput) -> Event:
        agent = self.agent
        if data.iteration > agent.max_iterations:
            logger.warning("Agent workflow hit max iterations", extra={"agent": agent.name})
            return self._finish(ctx, "")

        history = ctx.get(_HISTORY, [])
        reasoning = ctx.get(_REASONING, [])
        reply = await agent.llm.chat(agent.formatter.format(agent.tools, history, reasoning))

        try:
            step = agent.output_parser.parse(reply)
        except OutputParseError as exc:
            ctx.set(_REASONING, [*reasoning, ResponseReasoningStep(thought=reply, response="")])
            ctx.set(_HISTORY, [*history, user_message(parse_recovery_message(exc))])
            return LLMInputEvent(LLMInput(iteration=data.iteration + 1))

        ctx.set(_REASONING, [*reasoning, step])
        if isinstance(step, ActionReasoningStep):
            return ToolCallEvent(ToolCallRequest(step=step, iteration=data.iteration))
        if isinstance(step, ResponseReasoningStep):
            return self._finish(ctx, step.response)
        return LLMInputEvent(LLMInput(iteration=data.iteration + 1))

    async def _on_tool_call(self, ctx: RunContext, data: ToolCallRequest) -> Event:
        result = await self.agent.call_tool(data.step.action, data.step.action_input)
        return ToolResultEvent(ToolResult(result=result, iteration=data.iteration))

    async def _on_tool_result(self, ctx: RunContext, data: ToolResult) -> Event:
        result = data.result
        ctx.set(_TOOL_CALLS, [*ctx.get(_TOOL_CALLS, []), result])
        observation = ObservationReasoningStep(observation=result.tool_output.content, return_direct=result.return_direct)
        ctx.set(_REASONING, [*ctx.get(_REASONING, []), observation])
        if result.return_direct and not result.tool_output.is_error:
            return self._finish(ctx, result.tool_output.content)
        return LLMInputEvent(LLMInput(iteration=data.iteration + 1))

    def _finish(self, ctx: RunContext, answer: str) -> Event:
        final = clean_response(answer)
        if final:
            self.agent.memory.put(assistant_message(final))
        tool_calls: list[ToolCallResult] = ctx.get(_TOOL_CALLS, [])
        response = AgentChatResponse(
            response=final,
            tool_calls=list(tool_calls),
            sources=sources_of(tool_calls),
            metadata={"iterations": len(ctx.get(_REASONING, []))},
        )
        return stop_event(response, reason="answered")
