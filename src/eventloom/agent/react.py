"""ReAct agents.

:class:`ReActAgent` drives the model through the text protocol and repairs
malformed replies; :class:`FunctionCallingReActAgent` relies on the model's
native tool calling instead.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from eventloom.agent.base import BaseAgent
from eventloom.agent.errors import MaxIterationsError, OutputParseError, ToolCallingNotSupportedError
from eventloom.agent.formatter import ReActChatFormatter
from eventloom.agent.output_parser import ReActOutputParser
from eventloom.agent.prompts import PARSE_RECOVERY_MESSAGE
from eventloom.agent.types import (
    ActionReasoningStep,
    AgentChatResponse,
    AgentState,
    ObservationReasoningStep,
    ReasoningStep,
    ResponseReasoningStep,
    ToolCallResult,
    sources_of,
)
from eventloom.llm.base import (
    LLM,
    ChatMessage,
    assistant_message,
    supports_tool_calling,
    system_message,
    tool_message,
    user_message,
)
from eventloom.logging import get_logger
from eventloom.tools.registry import Tool, ToolOutput

logger = get_logger(__name__)


def clean_response(response: str) -> str:
    """Strip an ``Answer:`` prefix and surrounding whitespace."""

    idx = response.find("Answer:")
    if idx != -1:
        return response[idx + len("Answer:"):].strip()
    return response.strip()


def parse_recovery_message(error: BaseException) -> str:
    return PARSE_RECOVERY_MESSAGE.format(error=error)


class ReActAgent(BaseAgent):
    """Thought/Action/Observation loop over a plain chat model."""

    def __init__(
        self,
        llm: LLM,
        tools: Iterable[Tool] = (),
        *,
        output_parser: ReActOutputParser | None = None,
        formatter: ReActChatFormatter | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(llm, tools, **kwargs)
        self.output_parser = output_parser or ReActOutputParser()
        self.formatter = formatter or ReActChatFormatter()
        if self.system_prompt and not self.formatter.context:
            self.formatter.context = self.system_prompt
        self._current_reasoning: list[ReasoningStep] = []

    @property
    def current_reasoning(self) -> list[ReasoningStep]:
        return list(self._current_reasoning)

    async def chat_with_history(self, message: str, chat_history: Sequence[ChatMessage]) -> AgentChatResponse:
        self._set_state(AgentState.RUNNING)
        try:
            response = await self._run_turn(message, list(chat_history))
        except BaseException:
            self._set_state(AgentState.ERROR)
            raise
        self._set_state(AgentState.COMPLETED)
        return response

    async def _run_turn(self, message: str, history: list[ChatMessage]) -> AgentChatResponse:
        self._current_reasoning = []
        user = user_message(message)
        history.append(user)
        self.memory.put(user)

        final = ""
        tool_calls: list[ToolCallResult] = []

        for iteration in range(self.max_iterations):
            messages = self.formatter.format(self.tools, history, self._current_reasoning)
            logger.debug(
                "ReAct iteration",
                extra={"agent": self.name, "iteration": iteration + 1, "messages": len(messages)},
            )
            reply = await self.llm.chat(messages)

            try:
                step = self.output_parser.parse(reply)
            except OutputParseError as exc:
                logger.warning("Unparseable model reply, asking for a fix", extra={"agent": self.name, "error": str(exc)})
                self._current_reasoning.append(ResponseReasoningStep(thought=reply, response=""))
                history.append(user_message(parse_recovery_message(exc)))
                continue

            self._current_reasoning.append(step)
            if isinstance(step, ResponseReasoningStep):
                final = step.response
                break
            if not isinstance(step, ActionReasoningStep):
                continue

            self._set_state(AgentState.WAITING_FOR_TOOL)
            result = await self.call_tool(step.action, step.action_input)
            tool_calls.append(result)
            self._current_reasoning.append(
                ObservationReasoningStep(observation=result.tool_output.content, return_direct=result.return_direct)
            )
            if result.return_direct and not result.tool_output.is_error:
                final = result.tool_output.content
                break
            self._set_state(AgentState.RUNNING)
        else:
            logger.warning("ReAct loop hit max iterations", extra={"agent": self.name, "max": self.max_iterations})

        final = clean_response(final)
        if final:
            self.memory.put(assistant_message(final))

        return AgentChatResponse(
            response=final,
            tool_calls=tool_calls,
            sources=sources_of(tool_calls),
            metadata={"iterations": len(self._current_reasoning)},
        )

    def reset(self) -> None:
        self._current_reasoning = []
        super().reset()


class FunctionCallingReActAgent(BaseAgent):
    """Agent loop over a model with native tool calling."""

    def __init__(self, llm: LLM, tools: Iterable[Tool] = (), **kwargs: Any) -> None:
        super().__init__(llm, tools, **kwargs)
        self._current_reasoning: list[ReasoningStep] = []

    @property
    def current_reasoning(self) -> list[ReasoningStep]:
        return list(self._current_reasoning)

    async def chat_with_history(self, message: str, chat_history: Sequence[ChatMessage]) -> AgentChatResponse:
        if not supports_tool_calling(self.llm):
            raise ToolCallingNotSupportedError(f"{type(self.llm).__name__} does not support tool calling")

        self._set_state(AgentState.RUNNING)
        try:
            response = await self._run_turn(message, list(chat_history))
        except BaseException:
            self._set_state(AgentState.ERROR)
            raise
        self._set_state(AgentState.COMPLETED)
        return response

    async def _run_turn(self, message: str, history: list[ChatMessage]) -> AgentChatResponse:
        self._current_reasoning = []
        messages = list(history)
        if self.system_prompt:
            messages.insert(0, system_message(self.system_prompt))
        user = user_message(message)
        messages.append(user)
        self.memory.put(user)

        specs = [meta.to_spec() for meta in self.tool_metadata()]
        tool_calls: list[ToolCallResult] = []

        for iteration in range(self.max_iterations):
            reply = await self.llm.chat_with_tools(messages, specs)  # type: ignore[attr-defined]

            if not reply.tool_calls:
                final = reply.message.content if reply.message is not None else reply.text
                self._current_reasoning.append(ResponseReasoningStep(thought="", response=final))
                return self._respond(final, tool_calls, iteration + 1)

            messages.append(reply.message)
            for call in reply.tool_calls:
                self._set_state(AgentState.WAITING_FOR_TOOL)
                try:
                    kwargs = call.parse_arguments()
                except ValueError as exc:
                    result = ToolCallResult(
                        call.name, call.id, {}, ToolOutput.error(call.name, f"invalid tool arguments: {exc}")
                    )
                else:
                    result = await self.call_tool(call.name, kwargs, tool_id=call.id)

                tool_calls.append(result)
                self._current_reasoning.append(
                    ActionReasoningStep(thought=reply.text, action=call.name, action_input=result.tool_kwargs)
                )
                self._current_reasoning.append(
                    ObservationReasoningStep(observation=result.tool_output.content, return_direct=result.return_direct)
                )
                messages.append(tool_message(result.tool_output.content, call.id, name=call.name))

                if result.return_direct and not result.tool_output.is_error:
                    return self._respond(result.tool_output.content, tool_calls, iteration + 1)
            self._set_state(AgentState.RUNNING)

        raise MaxIterationsError(self.max_iterations)

    def _respond(self, final: str, tool_calls: list[ToolCallResult], iterations: int) -> AgentChatResponse:
        if final:
            self.memory.put(assistant_message(final))
        return AgentChatResponse(
            response=final,
            tool_calls=tool_calls,
            sources=sources_of(tool_calls),
            metadata={"iterations": iterations},
        )

    def reset(self) -> None:
        self._current_reasoning = []
        super().reset()


class SimpleAgent(BaseAgent):
    """One model call per turn, no tools."""

    async def chat_with_history(self, message: str, chat_history: Sequence[ChatMessage]) -> AgentChatResponse:
        self._set_state(AgentState.RUNNING)
        messages = list(chat_history)
        if self.system_prompt:
            messages.insert(0, system_message(self.system_prompt))
        user = user_message(message)
        messages.append(user)
        self.memory.put(user)

        try:
            reply = await self.llm.chat(messages)
        except BaseException:
            self._set_state(AgentState.ERROR)
            raise

        self.memory.put(assistant_message(reply))
        self._set_state(AgentState.COMPLETED)
        return AgentChatResponse(response=reply, metadata={"iterations": 1})


def get_agent_for_llm(llm: LLM, tools: Iterable[Tool] = (), **kwargs: Any) -> BaseAgent:
    """Pick the function-calling agent when ``llm`` supports tool calling, else the text ReAct agent."""

    if supports_tool_calling(llm):
        return FunctionCallingReActAgent(llm, tools, **kwargs)
    return ReActAgent(llm, tools, **kwargs)
