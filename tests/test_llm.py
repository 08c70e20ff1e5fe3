"""Tests for message types and the OpenAI client wrapper, using a fake SDK client."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest

from eventloom.config import Settings
from eventloom.llm import LLMError, OpenAILLM
from eventloom.llm.base import ChatMessage, ToolCall, ToolSpec, supports_tool_calling, tool_message, user_message


def completion(content: str | None = None, tool_calls: list[Any] | None = None) -> SimpleNamespace:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=None)


class FakeCompletions:
    def __init__(self, responses: list[Any]) -> None:
        self.responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    async def create(self, **kwargs: Any) -> Any:
        self.requests.append(kwargs)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def fake_client(*responses: Any) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(list(responses))))


def make_llm(client: SimpleNamespace, **kwargs: Any) -> OpenAILLM:
    return OpenAILLM(Settings(openai_model="test-model"), client=client, retry_backoff=0.0, **kwargs)


def test_chat_sends_openai_messages() -> None:
    """It should render messages in the Chat Completions format and return the text."""

    client = fake_client(completion("hi there"))
    llm = make_llm(client)

    reply = asyncio.run(llm.chat([ChatMessage(role="system", content="be brief"), user_message("hello")]))

    assert reply == "hi there"
    request = client.chat.completions.requests[0]
    assert request["model"] == "test-model"
    assert request["messages"] == [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "hello"},
    ]


def test_chat_with_tools_parses_tool_calls() -> None:
    """It should advertise tools and return the model's tool calls."""

    call = SimpleNamespace(id="c1", function=SimpleNamespace(name="add", arguments='{"a": 1}'))
    client = fake_client(completion(None, [call]))
    llm = make_llm(client)

    reply = asyncio.run(llm.chat_with_tools([user_message("q")], [ToolSpec("add", "Add numbers.")]))

    assert reply.text == ""
    assert reply.tool_calls == (ToolCall(id="c1", name="add", arguments='{"a": 1}'),)
    assert reply.tool_calls[0].parse_arguments() == {"a": 1}
    assert client.chat.completions.requests[0]["tools"][0]["function"]["name"] == "add"


def test_retries_then_succeeds() -> None:
    """It should retry failed requests with backoff."""

    client = fake_client(ConnectionError("reset"), completion("ok"))

    assert asyncio.run(make_llm(client, max_retries=2).complete("q")) == "ok"
    assert len(client.chat.completions.requests) == 2


def test_raises_after_retries() -> None:
    """It should raise LLMError once every attempt failed."""

    client = fake_client(ConnectionError("a"), ConnectionError("b"))

    with pytest.raises(LLMError, match="after 1 retries"):
        asyncio.run(make_llm(client, max_retries=1).complete("q"))


def test_requires_api_key_without_client() -> None:
    """It should refuse to build an SDK client without an API key."""

    with pytest.raises(ValueError, match="EVENTLOOM_OPENAI_API_KEY"):
        OpenAILLM(Settings(openai_api_key=None))


def test_tool_calling_switch() -> None:
    """It should report tool calling only when enabled."""

    assert supports_tool_calling(make_llm(fake_client()))
    assert not supports_tool_calling(make_llm(fake_client(), tool_calling=False))


def test_tool_message_rendering() -> None:
    """It should render tool results with their call id and without a name."""

    rendered = tool_message("5", "c1", name="add").to_openai()
    assert rendered == {"role": "tool", "content": "5", "tool_call_id": "c1"}
    assert ToolCall(id="x", name="noop", arguments="").parse_arguments() == {}
