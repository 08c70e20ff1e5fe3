"""Conversation memory."""

from __future__ import annotations

from eventloom.memory.buffer import ChatMemoryBuffer, Memory, SimpleMemory, default_tokenizer

__all__ = ["Memory", "SimpleMemory", "ChatMemoryBuffer", "default_tokenizer"]
