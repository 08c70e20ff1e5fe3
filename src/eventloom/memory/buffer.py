"""Chat memory: where agents keep conversation history between turns."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Protocol, runtime_checkable

from eventloom.config import default_settings
from eventloom.llm.base import ChatMessage

Tokenizer = Callable[[str], int]


def default_tokenizer(text: str) -> int:
    """Rough token count: about four characters per token."""

    return len(text) // 4


@runtime_checkable
class Memory(Protocol):
    """Storage for a conversation's messages."""

    def get_all(self) -> list[ChatMessage]: ...

    def get(self, input: str | None = None) -> list[ChatMessage]: ...  # noqa: A002

    def put(self, message: ChatMessage) -> None: ...

    def put_messages(self, messages: Iterable[ChatMessage]) -> None: ...

    def set(self, messages: Iterable[ChatMessage]) -> None: ...  # noqa: A003

    def reset(self) -> None: ...


class SimpleMemory:
    """Unbounded, in-process message log."""

    def __init__(self, messages: Iterable[ChatMessage] = ()) -> None:
        self._messages: list[ChatMessage] = list(messages)
        self._lock = threading.Lock()

    def get_all(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def get(self, input: str | None = None) -> list[ChatMessage]:  # noqa: A002
        return self.get_all()

    def put(self, message: ChatMessage) -> None:
        with self._lock:
            self._messages.append(message)

    def put_messages(self, messages: Iterable[ChatMessage]) -> None:
        with self._lock:
            self._messages.extend(messages)

    def set(self, messages: Iterable[ChatMessage]) -> None:  # noqa: A003
        with self._lock:
            self._messages = list(messages)

    def reset(self) -> None:
        with self._lock:
            self._messages = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


class ChatMemoryBuffer(SimpleMemory):
    """Message log whose :meth:`get` returns only the recent messages that fit a token budget.

    Trimming drops the oldest messages first and never leaves an assistant or
    tool message at the head of the window, since those only make sense after
    the message that prompted them.
    """

    def __init__(
        self,
        messages: Iterable[ChatMessage] = (),
        *,
        token_limit: int | None = None,
        tokenizer: Tokenizer = default_tokenizer,
    ) -> None:
        super().__init__(messages)
        if token_limit is None:
            token_limit = default_settings().memory_token_limit
        if token_limit <= 0:
            raise ValueError("token_limit must be > 0")
        self.token_limit = token_limit
        self._tokenizer = tokenizer

    def get(self, input: str | None = None, initial_token_count: int = 0) -> list[ChatMessage]:  # noqa: A002
        if initial_token_count > self.token_limit:
            raise ValueError(f"initial token count {initial_token_count} exceeds token limit {self.token_limit}")

        history = self.get_all()
        count = len(history)
        if count == 0:
            return history

        tokens = self._count(history) + initial_token_count
        while tokens > self.token_limit and count > 1:
            count -= 1
            while count > 0 and history[-count].role in ("assistant", "tool"):
                count -= 1
            if count <= 0:
                break
            tokens = self._count(history[-count:]) + initial_token_count

        if tokens > self.token_limit or count <= 0:
            return []
        return history[-count:]

    def _count(self, messages: list[ChatMessage]) -> int:
        if not messages:
            return 0
        return self._tokenizer("".join(" " + m.content for m in messages))
