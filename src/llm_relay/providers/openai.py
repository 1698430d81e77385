from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Final, Optional, Self, Sequence

from openai import AsyncOpenAI
from openai.types.chat import ChatCompletion, ChatCompletionChunk

from llm_relay._exceptions import EmptyResponseError, TranscriptError
from llm_relay.errors import ToolsNotSupportedError, maybe_wrap_tools_not_supported
from llm_relay.providers.base import ToolCapableLLM
from llm_relay.stream_utils import delta_text
from llm_relay.types.chat import ChatMessage
from llm_relay.types.tool import (
    AssistantTurn,
    StopReason,
    ToolCall,
    ToolDefinition,
    ToolResultTurn,
    ToolUseMessage,
    ToolUseResponse,
    UserTurn,
)

__all__ = ["OpenAIRequestAdapter", "OpenAILLM", "map_finish_reason"]

_FINISH_REASONS: Final[dict[str, StopReason]] = {
    "tool_calls": "tool_use",
    "length": "max_tokens",
}


def map_finish_reason(finish_reason: Optional[str]) -> StopReason:
    """Map an OpenAI ``finish_reason`` to the normalized stop reason."""
    return _FINISH_REASONS.get(finish_reason or "", "end_turn")


class OpenAIRequestAdapter:
    """Adapter for converting between the neutral model and OpenAI format."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    # --- requests ----------------------------------------------------------
    def build_messages(
        self, messages: Sequence[ChatMessage], system_prompt: str
    ) -> list[dict[str, Any]]:
        """Convert plain chat turns, with the system prompt first."""
        openai_messages: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt}
        ]
        for msg in messages:
            openai_messages.append({"role": msg["role"], "content": msg["content"]})
        return openai_messages

    def build_tool_messages(
        self, messages: Sequence[ToolUseMessage], system_prompt: str
    ) -> list[dict[str, Any]]:
        """
        Convert a tool-use transcript.

        Assistant turns replay the provider's own message so its tool_calls
        array stays intact; every tool result becomes its own ``tool`` message.
        """
        openai_messages: list[dict[str, Any]] = [
            {"role": "system", "content": system_prompt}
        ]
        for index, msg in enumerate(messages):
            if isinstance(msg, UserTurn):
                openai_messages.append({"role": "user", "content": msg.content})
            elif isinstance(msg, AssistantTurn):
                openai_messages.append(self._replay_assistant(msg.raw_message, index))
            elif isinstance(msg, ToolResultTurn):
                openai_messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": msg.content,
                    }
                )
            else:
                raise TranscriptError(
                    f"Unsupported transcript entry at index {index}: {type(msg).__name__}"
                )
        return openai_messages

    def _replay_assistant(self, raw: Any, index: int) -> dict[str, Any]:
        if hasattr(raw, "model_dump"):
            return raw.model_dump(exclude_none=True)
        if isinstance(raw, dict):
            return dict(raw)
        raise TranscriptError(
            f"Assistant message at index {index} is not an OpenAI message: "
            f"{type(raw).__name__}"
        )

    def build_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, Any]]:
        """Expose each tool as a function; the schema object is passed as-is."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
        ]

    def build_params(self, model: str, max_tokens: int) -> dict[str, Any]:
        """Token limit under the parameter name *model* accepts."""
        if self._requires_max_completion_tokens(model):
            return {"max_completion_tokens": max_tokens}
        return {"max_tokens": max_tokens}

    def _requires_max_completion_tokens(self, model: str) -> bool:
        """Check if model requires max_completion_tokens instead of max_tokens."""
        newer_models = {
            "gpt-5",  # GPT-5 series
            "o1",  # O1 series models
            "o3",  # O3 series models
            "o4",
        }
        return any(model.startswith(prefix) for prefix in newer_models)

    # --- responses ---------------------------------------------------------
    def completion_text(self, raw: ChatCompletion) -> Optional[str]:
        if not raw.choices or raw.choices[0].message is None:
            return None
        return raw.choices[0].message.content

    def tool_use_response(self, raw: ChatCompletion) -> ToolUseResponse:
        """Normalize a non-streaming completion from a tool-enabled request."""
        if not raw.choices:
            raise EmptyResponseError("No choice in OpenAI response")

        choice = raw.choices[0]
        message = choice.message
        stop_reason = map_finish_reason(choice.finish_reason)
        tool_calls = [self.parse_tool_call(tc) for tc in (message.tool_calls or [])]

        # Some OpenAI-compatible servers finish with "stop" even when they
        # emitted tool calls; the calls decide.
        if tool_calls and stop_reason == "end_turn":
            stop_reason = "tool_use"
        elif tool_calls and stop_reason == "max_tokens":
            self.logger.warning(
                "Dropping %d tool call(s) from a truncated response", len(tool_calls)
            )
            tool_calls = []
        elif not tool_calls and stop_reason == "tool_use":
            self.logger.warning("tool_calls finish with no tool calls, treating as end_turn")
            stop_reason = "end_turn"

        return ToolUseResponse(
            stop_reason=stop_reason,
            text_content=message.content or "",
            tool_calls=tool_calls,
            raw_assistant_message=message,
        )

    def parse_tool_call(self, tc: Any) -> ToolCall:
        """
        Coerce one vendor tool call into a ToolCall.

        A missing id or function name means the server cannot really do tool
        calling, so it is reported as such instead of as a parse failure.
        """
        function = getattr(tc, "function", None)
        tc_id = getattr(tc, "id", None)
        name = getattr(function, "name", None)
        if not tc_id or not name:
            missing = "id" if not tc_id else "function.name"
            raise ToolsNotSupportedError(f"Malformed tool_call: missing {missing}")

        raw_args = getattr(function, "arguments", None)
        arguments: Any = {}
        if isinstance(raw_args, dict):
            arguments = raw_args
        elif isinstance(raw_args, str) and raw_args.strip():
            try:
                arguments = json.loads(raw_args)
            except json.JSONDecodeError as exc:
                self.logger.warning(f"Bad JSON in tool call {tc_id}: {raw_args}", exc_info=exc)
                arguments = {}

        if not isinstance(arguments, dict):
            self.logger.warning(f"Non-object arguments in tool call {tc_id}: {raw_args}")
            arguments = {}

        return ToolCall(id=tc_id, name=name, input=arguments)


class OpenAILLM(ToolCapableLLM):
    """
    OpenAI Chat Completions provider (async‑only).

    Use ``OpenAILLM.from_client`` when you already have an ``AsyncOpenAI`` instance.
    """

    name = "openai"

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
        self.base_url = base_url
        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=timeout,
            max_retries=max_retries,
            base_url=base_url,
        )
        self._adapter = OpenAIRequestAdapter(self.logger)

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncOpenAI,
        *,
        max_tokens: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> Self:
        """
        Build an ``OpenAILLM`` around an already‑configured ``AsyncOpenAI`` client.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"OpenAILLM.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        ToolCapableLLM.__init__(
            self, model=model, max_tokens=max_tokens, logger=logger, name=name
        )
        self.api_key = client.api_key
        self.base_url = str(client.base_url)
        self._client = client
        self._adapter = OpenAIRequestAdapter(self.logger)
        return self

    @property
    def adapter(self) -> OpenAIRequestAdapter:
        return self._adapter

    def _base_args(self, messages: list[dict[str, Any]], stream: bool) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            **self._adapter.build_params(self.model, self.max_tokens),
        }

    async def stream_chunks(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[ChatCompletionChunk]:
        """Yield raw streaming chunks; the connection closes when iteration stops."""
        args = self._base_args(self._adapter.build_messages(messages, system_prompt), True)
        self._log(f"Sending request to {self.label} model {self.model} (Stream: True)")

        stream = await self._cancellable(self._client.chat.completions.create(**args), signal)
        async with stream:
            async for chunk in self._iterate(stream, signal):
                yield chunk

    async def chat(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        *,
        signal: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[str]:
        async for chunk in self.stream_chunks(messages, system_prompt, signal=signal):
            text = delta_text(chunk)
            if text:
                yield text

    async def _complete_text(
        self,
        messages: Sequence[ChatMessage],
        system_prompt: str,
        signal: Optional[asyncio.Event],
    ) -> Optional[str]:
        args = self._base_args(self._adapter.build_messages(messages, system_prompt), False)
        self._log(f"Sending request to {self.label} model {self.model} (Stream: False)")

        response: ChatCompletion = await self._cancellable(
            self._client.chat.completions.create(**args), signal
        )
        return self._adapter.completion_text(response)

    async def create_tool_use_message(
        self,
        *,
        messages: Sequence[ToolUseMessage],
        system_prompt: str,
        tools: Sequence[ToolDefinition],
        signal: Optional[asyncio.Event] = None,
    ) -> ToolUseResponse:
        args = self._base_args(
            self._adapter.build_tool_messages(messages, system_prompt), False
        )
        if tools:
            args["tools"] = self._adapter.build_tools(tools)

        self._log(
            f"Sending tool round to {self.label} model {self.model} "
            f"({len(tools)} tools, {len(messages)} messages)"
        )

        try:
            response: ChatCompletion = await self._cancellable(
                self._client.chat.completions.create(**args), signal
            )
        except Exception as exc:
            wrapped = maybe_wrap_tools_not_supported(exc)
            if wrapped is None or wrapped is exc:
                raise
            raise wrapped from exc

        return self._adapter.tool_use_response(response)
