"""
Translate noisy provider tracebacks into a unified `LLMRelayError`, while
preserving the original exception for full tracebacks.
"""

from __future__ import annotations

import logging
from typing import Final, Optional, Type

import anthropic
import openai

__all__: tuple[str, ...] = (
    "LLMRelayError",
    "EmptyResponseError",
    "RequestCancelledError",
    "ProviderConfigError",
    "TranscriptError",
    "classify_error",
)


class LLMRelayError(RuntimeError):
    """Public relay‐level exception.

    Attributes:
        original_exc: The underlying provider exception, if any.
    """

    original_exc: Optional[BaseException]

    def __init__(self, message: str, original_exc: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class EmptyResponseError(LLMRelayError):
    """The provider answered without any usable choice or content block."""


class RequestCancelledError(LLMRelayError):
    """The caller's cancellation signal fired before the request finished."""

    def __init__(self, message: str = "Request cancelled") -> None:
        super().__init__(message)


class ProviderConfigError(ValueError):
    """Invalid provider configuration, detected before any network call."""


class TranscriptError(ValueError):
    """A tool-use transcript is not in a state that can be sent to a provider."""


API_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIError,
    anthropic.APIError,
)

CONN_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    TimeoutError,
    ConnectionError,
)

RATE_LIMIT_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

AUTH_ERRORS: Final[tuple[Type[Exception], ...]] = (
    openai.AuthenticationError,
    anthropic.AuthenticationError,
)


def classify_error(
    exc: BaseException,
    logger: Optional[logging.Logger] = None,
) -> LLMRelayError:
    """Wrap an SDK exception in LLMRelayError with a friendly, concise message."""
    log = logger or logging.getLogger("llm_relay.exceptions")

    if isinstance(exc, LLMRelayError):
        return exc
    if isinstance(exc, RATE_LIMIT_ERRORS):
        msg = "Rate‑limit exceeded – please retry later"
    elif isinstance(exc, AUTH_ERRORS):
        msg = "Authentication failed – check the API key"
    elif isinstance(exc, CONN_ERRORS):
        msg = "Connection problem – unable to reach the LLM provider"
    elif isinstance(exc, API_ERRORS):
        status = getattr(exc, "status_code", None)
        msg = f"Provider reported an error ({status})" if status else "Provider reported an error"
    else:
        msg = exc.__class__.__name__

    log.warning("Wrapping provider exception: %s", msg, extra={"exc": exc})
    return LLMRelayError(f"{msg}: {exc}", exc)
