"""
Ollama provider: local models through Ollama's OpenAI-compatible API.

Ollama exposes:
- OpenAI-compatible API at ${base}/v1 (chat, completions, tool calls)
- Native API at ${base}/api (model listing, health)

Chat and tool rounds are delegated to an ``OpenAILLM`` pointed at ${base}/v1.
Streaming adds a content-phase filter so reasoning output from thinking
models never reaches the caller. Introspection uses the native API.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Final, Optional, Sequence

import httpx

from llm_relay.providers.base import ToolCapableLLM
from llm_relay.providers.openai import OpenAILLM
from llm_relay.stream_utils import ContentPhaseFilter, delta_reasoning, delta_text
from llm_relay.types.chat import ChatMessage
from llm_relay.types.tool import ToolDefinition, ToolUseMessage, ToolUseResponse

__all__ = ["OllamaLLM", "normalize_ollama_url", "DEFAULT_OLLAMA_URL"]

_logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_URL: Final = "http://localhost:11434"
INTROSPECTION_TIMEOUT: Final = 5.0
_OLLAMA_DUMMY_KEY: Final = "ollama"  # Ollama ignores it, the OpenAI client requires one


def normalize_ollama_url(url: str) -> str:
    """
    Normalize an Ollama base URL.

    Trims whitespace and trailing slashes and strips any ``/v1`` suffix, so the
    OpenAI-compatible path is never doubled. Raises ValueError unless the URL
    uses http:// or https://.
    """
    normalized = url.strip().rstrip("/")
    while normalized.endswith("/v1"):
        normalized = normalized[: -len("/v1")].rstrip("/")
    if not normalized.startswith(("http://", "https://")):
        raise ValueError(
            f"Ollama URL must start with http:// or https://, got: {normalized}"
        )
    return normalized


class OllamaLLM(ToolCapableLLM):
    """Local models served by Ollama."""

    name = "ollama"

    def __init__(
        self,
        model: str,
        *,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        max_retries: int = 2,
        max_tokens: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        super().__init__(model=model, max_tokens=max_tokens, logger=logger, name=name)
        self.base_url = normalize_ollama_url(base_url or DEFAULT_OLLAMA_URL)
        self._openai = OpenAILLM(
            model,
            api_key=_OLLAMA_DUMMY_KEY,
            base_url=f"{self.base_url}/v1",
            timeout=timeout,
            max_retries=max_retries,
            max_tokens=max_tokens,
            logger=self.logger,
            name=self.label,
        )

    @property
    def endpoint(self) -> str:
        """Endpoint part of this provider's capability key."""
        return self.base_url

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        phase = ContentPhaseFilter()
        reasoning_chunks = 0
        async for chunk in self._openai.stream_chunks(messages, system_prompt, signal=signal):
            text = delta_text(chunk)
            if not text:
                if delta_reasoning(chunk):
                    reasoning_chunks += 1
                continue
            visible = phase.feed(text)
            if visible:
                yield visible

        rest = phase.flush()
        if rest:
            yield rest
        if reasoning_chunks:
            self._log(f"Skipped {reasoning_chunks} reasoning deltas", logging.DEBUG)

    async def _complete_text(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        signal: Optional[asyncio.Event],
    ) -> Optional[str]:
        return await self._openai._complete_text(messages, system_prompt, signal)

    async def create_tool_use_message(
        self,
        *,
        messages: Sequence[ToolUseMessage],
        system_prompt: str,
        tools: Sequence[ToolDefinition],
        signal: Optional[asyncio.Event] = None,
    ) -> ToolUseResponse:
        return await self._openai.create_tool_use_message(
            messages=messages, system_prompt=system_prompt, tools=tools, signal=signal
        )

    async def aclose(self) -> None:
        await self._openai.aclose()

    # --- introspection (native API) ----------------------------------------
    @staticmethod
    async def list_models(
        base_url: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> list[str]:
        """List installed models via ``/api/tags``; ``[]`` on any failure."""
        try:
            base = normalize_ollama_url(base_url or DEFAULT_OLLAMA_URL)
            async with httpx.AsyncClient(
                timeout=INTROSPECTION_TIMEOUT, transport=transport
            ) as client:
                response = await client.get(f"{base}/api/tags")
            if response.status_code != 200:
                return []
            data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            _logger.debug("Ollama model listing failed: %s", exc)
            return []

        models = data.get("models") if isinstance(data, dict) else None
        if not isinstance(models, list):
            return []
        return [
            m["name"] for m in models if isinstance(m, dict) and isinstance(m.get("name"), str)
        ]

    @staticmethod
    async def test_connection(
        base_url: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> bool:
        """Ping ``/api/tags``; False on any failure."""
        try:
            base = normalize_ollama_url(base_url or DEFAULT_OLLAMA_URL)
            async with httpx.AsyncClient(
                timeout=INTROSPECTION_TIMEOUT, transport=transport
            ) as client:
                response = await client.get(f"{base}/api/tags")
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            _logger.debug("Ollama connection test failed: %s", exc)
            return False
        return response.is_success
