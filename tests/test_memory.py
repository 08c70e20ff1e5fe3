"""Tests for chat memory."""

from __future__ import annotations

import pytest

from eventloom.llm.base import assistant_message, user_message
from eventloom.memory import ChatMemoryBuffer, Memory, SimpleMemory


def words(text: str) -> int:
    return len(text.split())


CONVERSATION = [
    user_message("a b c d"),
    assistant_message("e f g h"),
    user_message("i j"),
    assistant_message("k l"),
]


def test_simple_memory_round_trip() -> None:
    """It should store, replace and clear messages."""

    memory = SimpleMemory()
    memory.put(user_message("hi"))
    memory.put_messages([assistant_message("hello")])

    assert [m.content for m in memory.get_all()] == ["hi", "hello"]
    memory.set([user_message("only")])
    assert len(memory) == 1
    memory.reset()
    assert memory.get() == []
    assert isinstance(memory, Memory)


def test_buffer_keeps_recent_messages_within_budget() -> None:
    """It should drop the oldest messages until the rest fit the token limit."""

    memory = ChatMemoryBuffer(CONVERSATION, token_limit=5, tokenizer=words)

    assert [m.content for m in memory.get()] == ["i j", "k l"]
    assert len(memory.get_all()) == 4


def test_buffer_never_starts_with_assistant() -> None:
    """It should return nothing rather than a window opening on an assistant message."""

    memory = ChatMemoryBuffer(CONVERSATION, token_limit=3, tokenizer=words)
    assert memory.get() == []


def test_buffer_returns_everything_that_fits() -> None:
    """It should return the full history when it is under budget."""

    memory = ChatMemoryBuffer(CONVERSATION, token_limit=100, tokenizer=words)
    assert len(memory.get()) == 4


def test_buffer_counts_initial_tokens() -> None:
    """It should reserve room for tokens the caller already spent."""

    memory = ChatMemoryBuffer(CONVERSATION, token_limit=8, tokenizer=words)

    assert len(memory.get()) == 2
    assert len(memory.get(initial_token_count=5)) == 0
    with pytest.raises(ValueError):
        memory.get(initial_token_count=9)


def test_buffer_rejects_non_positive_limit() -> None:
    """It should require a positive token limit."""

    with pytest.raises(ValueError):
        ChatMemoryBuffer(token_limit=0)


def test_buffer_default_limit_from_settings() -> None:
    """It should take its default token limit from settings."""

    assert ChatMemoryBuffer().token_limit == 3000
