"""Shared streaming utilities for OpenAI-style chunk streams."""
from __future__ import annotations

from typing import Any, Final, Optional

from openai.types.chat import ChatCompletionChunk

__all__ = [
    "REASONING_FIELDS",
    "chunk_delta",
    "delta_text",
    "delta_reasoning",
    "ContentPhaseFilter",
]

# Non-standard delta fields local servers use for "thinking" output
REASONING_FIELDS: Final[tuple[str, ...]] = ("reasoning", "reasoning_content", "thinking")

THINK_OPEN: Final = "<think>"
THINK_CLOSE: Final = "</think>"


def chunk_delta(chunk: ChatCompletionChunk) -> Optional[Any]:
    if not chunk.choices:
        return None
    return chunk.choices[0].delta


def delta_text(chunk: ChatCompletionChunk) -> str:
    """Return the text content of a chunk, ignoring tool calls, refusals, etc."""
    delta = chunk_delta(chunk)
    if delta is None:
        return ""
    return delta.content or ""


def delta_reasoning(chunk: ChatCompletionChunk) -> str:
    """Return any reasoning text carried in a chunk's extra delta fields."""
    delta = chunk_delta(chunk)
    if delta is None:
        return ""
    extra = getattr(delta, "model_extra", None) or {}
    for field in REASONING_FIELDS:
        value = extra.get(field, getattr(delta, field, None))
        if isinstance(value, str) and value:
            return value
    return ""


class ContentPhaseFilter:
    """
    Drop a model's reasoning phase and pass through only the answer.

    Reasoning arrives either in dedicated delta fields (handled by the caller
    via ``delta_reasoning``) or inline as a leading ``<think>...</think>``
    block in ``delta.content``. Tags may be split across chunks, so text is
    buffered until the filter can tell which phase it belongs to.
    """

    _START = "start"
    _THINKING = "thinking"
    _AFTER_THINKING = "after_thinking"
    _CONTENT = "content"

    def __init__(self) -> None:
        self._state = self._START
        self._buffer = ""

    @property
    def in_content(self) -> bool:
        return self._state == self._CONTENT

    def feed(self, text: str) -> str:
        """Consume a content delta and return the part to surface."""
        if not text:
            return ""
        if self._state == self._CONTENT:
            return text

        self._buffer += text

        if self._state == self._START:
            stripped = self._buffer.lstrip()
            if not stripped:
                return ""
            if stripped.startswith(THINK_OPEN):
                self._state = self._THINKING
                self._buffer = stripped[len(THINK_OPEN):]
            elif THINK_OPEN.startswith(stripped):
                return ""  # could still become <think>
            else:
                return self._enter_content(self._buffer)

        if self._state == self._THINKING:
            end = self._buffer.find(THINK_CLOSE)
            if end == -1:
                # keep just enough to detect a split closing tag
                self._buffer = self._buffer[-(len(THINK_CLOSE) - 1):]
                return ""
            self._buffer = self._buffer[end + len(THINK_CLOSE):]
            self._state = self._AFTER_THINKING

        # _AFTER_THINKING: skip whitespace separating reasoning from answer
        rest = self._buffer.lstrip()
        if not rest:
            self._buffer = ""
            return ""
        return self._enter_content(rest)

    def flush(self) -> str:
        """Return text still held back when the stream ends."""
        pending = self._buffer if self._state == self._START else ""
        self._buffer = ""
        return pending

    def _enter_content(self, text: str) -> str:
        self._state = self._CONTENT
        self._buffer = ""
        return text
