"""
Recognize "this model cannot use tools" failures.

Vendors do not return a structured error code for this condition, so the
message text is the only signal. The pattern list reflects error text seen
from OpenAI, Ollama and OpenAI-compatible servers; extend it as new wording
shows up.
"""

from __future__ import annotations

import re
from typing import Final, Optional, Pattern

from llm_relay._exceptions import LLMRelayError

__all__ = [
    "ToolsNotSupportedError",
    "TOOLS_NOT_SUPPORTED_PATTERNS",
    "maybe_wrap_tools_not_supported",
]


class ToolsNotSupportedError(LLMRelayError):
    """Raised when a model rejects, or cannot produce, tool calls."""

    code: Final = "TOOLS_NOT_SUPPORTED"

    def __init__(
        self,
        message: str = "Model does not support tool use",
        original_exc: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, original_exc)


TOOLS_NOT_SUPPORTED_PATTERNS: Final[tuple[Pattern[str], ...]] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\btools? (?:are |is )?not supported",
        r"does not support (?:tools|tool use|tool calling|function calling)",
        r"\binvalid tools?\b",
        r"unknown field:? ['\"]?tools\b",
        r"unrecognized request argument supplied: tools",
        r"function calling is not (?:supported|enabled)",
    )
)


def _error_text(error: object) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        # openai/anthropic status errors keep the server text in .message
        message = getattr(error, "message", None)
        text = str(error)
        if isinstance(message, str) and message not in text:
            return f"{text} {message}"
        return text
    return str(error)


def maybe_wrap_tools_not_supported(error: object) -> Optional[ToolsNotSupportedError]:
    """
    Convert a tool-capability failure into ``ToolsNotSupportedError``.

    Returns the error unchanged if it already is one, a new wrapped error if
    its message matches a known pattern, and ``None`` otherwise so unrelated
    failures (timeouts, rate limits, auth) can propagate untouched.
    """
    if isinstance(error, ToolsNotSupportedError):
        return error

    text = _error_text(error)
    if not any(pattern.search(text) for pattern in TOOLS_NOT_SUPPORTED_PATTERNS):
        return None

    original = error if isinstance(error, BaseException) else None
    return ToolsNotSupportedError(str(error), original)
