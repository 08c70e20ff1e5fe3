"""Tests for the text-protocol ReAct agent."""

from __future__ import annotations

import asyncio

import pytest

from eventloom.agent import (
    AgentState,
    FunctionCallingReActAgent,
    ReActAgent,
    ReActOutputParser,
    SimpleAgent,
    get_agent_for_llm,
)
from eventloom.agent.types import ActionReasoningStep, ObservationReasoningStep, ResponseReasoningStep
from eventloom.tools.registry import FunctionTool

S6_REPLIES = [
    'Thought: I need to add\nAction: add\nAction Input: {"a": 2, "b": 3}',
    'Thought: Now finish\nAction: done\nAction Input: {"text": "5"}',
]


def test_recovers_from_unparseable_reply(scripted_llm) -> None:
    """It should send a format reminder after a malformed reply and then accept the answer."""

    llm = scripted_llm(["I will help you", "Thought: done\nAnswer: 42"])
    agent = ReActAgent(llm, output_parser=ReActOutputParser(implicit_answer=False))

    response = asyncio.run(agent.chat("What is the answer?"))

    assert response.response == "42"
    assert len(agent.current_reasoning) == 2
    assert response.metadata["iterations"] == 2
    reminder = llm.calls[1][-2]
    assert reminder.role == "user"
    assert reminder.content.startswith("Error while parsing the output: could not parse output: I will help you")
    assert agent.state is AgentState.COMPLETED


def test_implicit_answer_by_default(scripted_llm) -> None:
    """It should accept a keyword-free reply as the answer with the default parser."""

    agent = ReActAgent(scripted_llm(["Just 42."]))

    assert asyncio.run(agent.chat("q")).response == "Just 42."


def test_tool_calls_until_return_direct(scripted_llm, add_tool: FunctionTool, done_tool: FunctionTool) -> None:
    """It should call tools in turn and stop at a successful return_direct tool."""

    llm = scripted_llm(S6_REPLIES)
    agent = ReActAgent(llm, [add_tool, done_tool])

    response = asyncio.run(agent.chat("add 2 and 3"))

    assert response.response == "5"
    assert [c.tool_name for c in response.tool_calls] == ["add", "done"]
    assert response.tool_calls[0].tool_kwargs == {"a": 2, "b": 3}
    assert response.tool_calls[0].tool_output.content == "5"
    assert [s.content for s in response.sources] == ["5", "5"]
    assert [type(s) for s in agent.current_reasoning] == [
        ActionReasoningStep,
        ObservationReasoningStep,
        ActionReasoningStep,
        ObservationReasoningStep,
    ]
    # the observation from add is fed back before the second model call
    assert llm.calls[1][-1].content == "Observation: 5"
    assert [m.role for m in agent.chat_history()] == ["user", "assistant"]


def test_unknown_tool_is_reported_to_model(scripted_llm, add_tool: FunctionTool) -> None:
    """It should answer a request for a missing tool with an error observation."""

    llm = scripted_llm(["Thought: t\nAction: nope\nAction Input: {}", "Thought: ok\nAnswer: fine"])
    agent = ReActAgent(llm, [add_tool])

    response = asyncio.run(agent.chat("q"))

    assert response.response == "fine"
    output = response.tool_calls[0].tool_output
    assert output.is_error
    assert output.content == "tool not found: nope"


def test_failed_return_direct_tool_does_not_end_turn(scripted_llm, explode_tool: FunctionTool) -> None:
    """It should keep looping when a return_direct tool fails."""

    llm = scripted_llm(
        ['Thought: t\nAction: explode\nAction Input: {"reason": "kaboom"}', "Thought: recovered\nAnswer: sorry"]
    )
    agent = ReActAgent(llm, [explode_tool])

    response = asyncio.run(agent.chat("q"))

    assert response.response == "sorry"
    assert response.tool_calls[0].tool_output.is_error
    assert response.tool_calls[0].tool_output.content == "kaboom"


def test_max_iterations_returns_empty_answer(scripted_llm, add_tool: FunctionTool) -> None:
    """It should give up quietly after max_iterations model calls."""

    llm = scripted_llm(default='Thought: again\nAction: add\nAction Input: {"a": 1, "b": 1}')
    agent = ReActAgent(llm, [add_tool], max_iterations=3)

    response = asyncio.run(agent.chat("loop forever"))

    assert response.response == ""
    assert len(response.tool_calls) == 3
    assert len(llm.calls) == 3
    assert agent.state is AgentState.COMPLETED


def test_model_failure_sets_error_state(scripted_llm) -> None:
    """It should propagate model errors and mark the agent as failed."""

    agent = ReActAgent(scripted_llm([]))

    with pytest.raises(AssertionError):
        asyncio.run(agent.chat("q"))
    assert agent.state is AgentState.ERROR


def test_system_prompt_becomes_context(scripted_llm) -> None:
    """It should put the agent's system prompt into the ReAct header."""

    llm = scripted_llm(["Answer-free reply"])
    agent = ReActAgent(llm, system_prompt="Always be brief.")
    asyncio.run(agent.chat("q"))

    assert "Always be brief." in llm.calls[0][0].content


def test_reset_clears_memory_and_reasoning(scripted_llm) -> None:
    """It should forget the conversation on reset."""

    agent = ReActAgent(scripted_llm(["Thought: t\nAnswer: a"]))
    asyncio.run(agent.chat("q"))
    agent.reset()

    assert agent.chat_history() == []
    assert agent.current_reasoning == []
    assert agent.state is AgentState.IDLE


def test_tool_management(scripted_llm, add_tool: FunctionTool, done_tool: FunctionTool) -> None:
    """It should add, look up and remove tools by name."""

    agent = ReActAgent(scripted_llm([]), [add_tool])
    agent.add_tool(done_tool)

    assert agent.get_tool("done") is done_tool
    with pytest.raises(ValueError):
        agent.add_tool(add_tool)
    agent.remove_tool("add")
    assert [t.name for t in agent.tools] == ["done"]


def test_simple_agent_and_stream(scripted_llm) -> None:
    """It should answer with a single model call and stream the answer."""

    agent = SimpleAgent(scripted_llm(["hello", "again"]), system_prompt="be nice")

    async def main() -> tuple[str, list[str]]:
        first = await agent.chat("hi")
        chunks = [chunk async for chunk in agent.stream_chat("hi again")]
        return first.response, chunks

    assert asyncio.run(main()) == ("hello", ["again"])
    assert [m.role for m in agent.chat_history()] == ["user", "assistant", "user", "assistant"]


def test_agent_selection(scripted_llm, scripted_tool_llm) -> None:
    """It should pick the function-calling agent only for tool-calling models."""

    assert type(get_agent_for_llm(scripted_llm())) is ReActAgent
    assert isinstance(get_agent_for_llm(scripted_tool_llm()), FunctionCallingReActAgent)


def test_response_step_content() -> None:
    """It should render streaming answers with the partial marker."""

    step = ResponseReasoningStep(thought="t", response="par", is_streaming=True)
    assert step.content == "Thought: t\nAnswer (Starts With): par ..."
