"""Base classes for provider implementations."""
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Optional, Sequence, TypeVar

from llm_relay._exceptions import RequestCancelledError, classify_error
from llm_relay.types.chat import ChatMessage, ChatResponse
from llm_relay.types.tool import ToolDefinition, ToolUseMessage, ToolUseResponse

__all__ = ["BaseAsyncLLM", "ToolCapableLLM", "is_tool_capable", "DEFAULT_MAX_TOKENS"]

T = TypeVar("T")

DEFAULT_MAX_TOKENS = 4096

_STREAM_END = object()


class BaseAsyncLLM(ABC):
    """
    Base class for all provider implementations. All implementations are async-first.

    Subclasses implement ``chat`` (streamed text) and ``_complete_text``
    (single-shot text); ``chat_complete`` turns the latter into a
    ``ChatResponse`` so provider failures come back as values.
    """

    name: str = "base"

    def __init__(
        self,
        model: str,
        *,
        max_tokens: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        """
        Initializes the base LLM client.

        Args:
            model: The identifier of the LLM model to be used.
            max_tokens: Output token cap; defaults to ``DEFAULT_MAX_TOKENS``.
            logger: Optional logger instance. If None, a logger named after
                    this module will be used.
            name: Optional name for this component, used in logging.
                  If None, defaults to the concrete class's name.
        """
        self.model = model
        self.max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        self.logger = logger or logging.getLogger(__name__)
        self.label = name if name is not None else self.__class__.__name__

    @abstractmethod
    def chat(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        """
        Stream the assistant's reply as text increments.

        Implementations are async generators; iterating the result drives the
        request. Setting *signal* aborts the stream and closes the connection.
        """
        ...

    @abstractmethod
    async def _complete_text(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        signal: Optional[asyncio.Event],
    ) -> Optional[str]:
        """Return the reply text, or None when the provider sent no text."""
        ...

    async def chat_complete(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> ChatResponse:
        """Send a non-streaming request; errors are returned, not raised."""
        try:
            text = await self._complete_text(messages, system_prompt, signal)
        except Exception as exc:
            return self._wrap_error(exc)

        if not text:
            return ChatResponse(content="", error="No text content in response")
        return ChatResponse(content=text)

    def _wrap_error(self, exc: Exception) -> ChatResponse:
        """Wrap exception into an error response."""
        err = classify_error(exc, self.logger)
        return ChatResponse(content="", error=str(err))

    async def _cancellable(
        self, awaitable: Awaitable[T], signal: Optional[asyncio.Event]
    ) -> T:
        """Await *awaitable*, abandoning it if *signal* is set first."""
        if signal is None:
            return await awaitable
        if signal.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestCancelledError()

        request = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(signal.wait())
        try:
            await asyncio.wait({request, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (request, waiter):
                if not task.done():
                    task.cancel()

        if request.done() and not request.cancelled():
            return request.result()
        self._log("Request cancelled by caller", logging.DEBUG)
        raise RequestCancelledError()

    async def _iterate(
        self, stream: Any, signal: Optional[asyncio.Event]
    ) -> AsyncIterator[Any]:
        """Iterate an async stream, checking *signal* between items."""
        iterator = stream.__aiter__()
        while True:
            item = await self._cancellable(anext(iterator, _STREAM_END), signal)
            if item is _STREAM_END:
                return
            yield item

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.label}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close underlying async HTTP clients to avoid cleanup after the loop closes.
        Safe to call multiple times.
        """
        client = getattr(self, "_client", None)
        close = getattr(client, "close", None)
        if close:
            await close()

    async def __aenter__(self) -> "BaseAsyncLLM":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


class ToolCapableLLM(BaseAsyncLLM):
    """Provider that can run non-streaming tool-use rounds."""

    supports_tools: bool = True

    @abstractmethod
    async def create_tool_use_message(
        self,
        *,
        messages: Sequence[ToolUseMessage],
        system_prompt: str,
        tools: Sequence[ToolDefinition],
        signal: Optional[asyncio.Event] = None,
    ) -> ToolUseResponse:
        """
        Run one tool-use round and normalize the reply.

        Always non-streaming: partial tool-call JSON cannot be parsed safely
        across vendors.
        """
        ...


def is_tool_capable(provider: object) -> bool:
    """True if *provider* implements the tool-use extension."""
    return getattr(provider, "supports_tools", False) is True and callable(
        getattr(provider, "create_tool_use_message", None)
    )
