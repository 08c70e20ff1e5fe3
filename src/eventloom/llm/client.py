"""OpenAI-compatible LLM client.

This wraps the `openai` Python SDK (`AsyncOpenAI`) and implements both the
plain and the tool-calling model interfaces.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping, Sequence, TypeVar

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion

from eventloom.config import Settings
from eventloom.llm.base import (
    ChatMessage,
    ToolCall,
    ToolCallingResponse,
    ToolSpec,
    assistant_message,
    user_message,
)
from eventloom.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R")


class LLMError(RuntimeError):
    """A model request failed after retries."""


class OpenAILLM:
    """LLM client using the OpenAI-compatible Chat Completions API."""

    def __init__(
        self,
        settings: Settings,
        *,
        temperature: float = 0.2,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        tool_calling: bool = True,
        client: AsyncOpenAI | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings.
            temperature: Sampling temperature.
            max_retries: Maximum retry attempts per request.
            retry_backoff: Base of the exponential backoff, in seconds.
            tool_calling: Whether to advertise native tool calling.
            client: Pre-built SDK client, mainly for tests.
        """

        self._settings = settings
        if client is None:
            if not settings.openai_api_key:
                raise ValueError(
                    "Missing EVENTLOOM_OPENAI_API_KEY. "
                    "Set it in environment variables or a .env file."
                )
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                max_retries=0,  # We handle retries ourselves
            )
        self._client = client
        self._temperature = temperature
        self._max_retries = max_retries
        self._retry_backoff = retry_backoff
        self._tool_calling = tool_calling

    @property
    def model(self) -> str:
        return self._settings.openai_model

    async def complete(self, prompt: str) -> str:
        return await self.chat([user_message(prompt)])

    async def chat(self, messages: Sequence[ChatMessage]) -> str:
        resp = await self._create(messages)
        choice = resp.choices[0]
        if not choice.message or choice.message.content is None:
            return ""
        return choice.message.content

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield text deltas of a single-prompt completion."""

        chunks = await self._with_retry(
            lambda: self._client.chat.completions.create(
                model=self.model,
                messages=[user_message(prompt).to_openai()],
                temperature=self._temperature,
                timeout=self._settings.openai_timeout_s,
                stream=True,
            )
        )
        async for chunk in chunks:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta is not None and delta.content:
                yield delta.content

    def supports_tool_calling(self) -> bool:
        return self._tool_calling

    async def chat_with_tools(
        self,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        options: Mapping[str, Any] | None = None,
    ) -> ToolCallingResponse:
        extra: dict[str, Any] = dict(options or {})
        if tools:
            extra["tools"] = [t.to_openai_tool() for t in tools]
        resp = await self._create(messages, **extra)

        message = resp.choices[0].message
        text = (message.content or "") if message else ""
        calls = tuple(
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in (message.tool_calls or [] if message else [])
            if getattr(tc, "function", None) is not None
        )
        return ToolCallingResponse(text=text, message=assistant_message(text, calls))

    async def _create(self, messages: Sequence[ChatMessage], **extra: Any) -> ChatCompletion:
        payload = [m.to_openai() for m in messages]
        started = time.monotonic()
        resp: ChatCompletion = await self._with_retry(
            lambda: self._client.chat.completions.create(
                model=self.model,
                messages=payload,
                temperature=self._temperature,
                timeout=self._settings.openai_timeout_s,
                **extra,
            )
        )
        logger.debug(
            "LLM completion successful",
            extra={
                "model": self.model,
                "latency_ms": (time.monotonic() - started) * 1000,
                "tokens": resp.usage.total_tokens if resp.usage else None,
            },
        )
        return resp

    async def _with_retry(self, request: Callable[[], Awaitable[R]]) -> R:
        last_error: Exception | None = None
        for attempt in range(self._max_retries + 1):
            try:
                return await request()
            except Exception as e:  # noqa: BLE001
                last_error = e
                if attempt < self._max_retries:
                    wait_time = self._retry_backoff * (2**attempt)
                    logger.warning(
                        "LLM request failed, retrying",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self._max_retries,
                            "wait_time": wait_time,
                            "error": str(e),
                        },
                    )
                    await asyncio.sleep(wait_time)
                else:
                    logger.error("LLM request failed after retries", extra={"error": str(e)})

        raise LLMError(f"LLM request failed after {self._max_retries} retries: {last_error}") from last_error
