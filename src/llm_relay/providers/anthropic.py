from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, Optional, Self, Sequence

from anthropic import AsyncAnthropic
from anthropic.types import Message

from llm_relay._exceptions import RequestCancelledError
from llm_relay.providers.base import BaseAsyncLLM
from llm_relay.types.chat import ChatMessage

__all__ = ["AnthropicRequestAdapter", "AnthropicLLM"]


class AnthropicRequestAdapter:
    """Adapter for converting between the neutral model and Anthropic format."""

    def build_request(
        self,
        model: str,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        max_tokens: int,
    ) -> dict[str, Any]:
        """Anthropic takes the system prompt as a top-level field, not a message."""
        return {
            "model": model,
            "max_tokens": max_tokens,
            "system": system_prompt,
            "messages": [{"role": m["role"], "content": m["content"]} for m in messages],
        }

    def stream_text(self, event: Any) -> str:
        """Extract text from a streaming event; everything but text deltas is ignored."""
        if getattr(event, "type", None) != "content_block_delta":
            return ""
        delta = getattr(event, "delta", None)
        if getattr(delta, "type", None) != "text_delta":
            return ""
        return delta.text or ""

    def completion_text(self, raw: Message) -> Optional[str]:
        """Return the first text block of a response."""
        for block in raw.content or []:
            if block.type == "text":
                return block.text
        return None


class AnthropicLLM(BaseAsyncLLM):
    """
    Anthropic Messages API provider (async‑only). Chat only, no tool rounds.

    Use ``AnthropicLLM.from_client`` when you already have an ``AsyncAnthropic`` instance.
    """

    name = "anthropic"

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        timeout: float = 60.0,
        max_retries: int = 2,
        max_tokens: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, logger=logger, name=name)
        self.api_key = api_key
        self._client = AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url,
        )
        self._adapter = AnthropicRequestAdapter()

    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncAnthropic,
        *,
        max_tokens: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Wrap an existing ``AsyncAnthropic`` client.
        """
        if not isinstance(client, AsyncAnthropic):
            raise TypeError(
                f"AnthropicLLM.from_client expects AsyncAnthropic; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(
            self, model=model, max_tokens=max_tokens, logger=logger, name=name
        )
        self.api_key = client.api_key or ""
        self._client = client
        self._adapter = AnthropicRequestAdapter()
        return self

    @property
    def adapter(self) -> AnthropicRequestAdapter:
        return self._adapter

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        args = self._adapter.build_request(
            self.model, messages, system_prompt, self.max_tokens
        )
        self._log(f"Sending request to Anthropic model {self.model} (Stream: True)")

        if signal is not None and signal.is_set():
            raise RequestCancelledError()

        async with AsyncExitStack() as stack:
            # opening the stream sends the request
            stream = await self._cancellable(
                stack.enter_async_context(self._client.messages.stream(**args)), signal
            )
            async for event in self._iterate(stream, signal):
                text = self._adapter.stream_text(event)
                if text:
                    yield text

    async def _complete_text(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        signal: Optional[asyncio.Event],
    ) -> Optional[str]:
        args = self._adapter.build_request(
            self.model, messages, system_prompt, self.max_tokens
        )
        self._log(f"Sending request to Anthropic model {self.model} (Stream: False)")

        response: Message = await self._cancellable(
            self._client.messages.create(**args), signal
        )
        return self._adapter.completion_text(response)
