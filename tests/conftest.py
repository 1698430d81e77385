"""Shared fixtures: real OpenAI response objects and fake SDK streams."""

from typing import Any, Optional

import pytest
from openai.types.chat import ChatCompletion, ChatCompletionChunk


class FakeStream:
    """Stands in for an SDK stream: async iterable and async context manager."""

    def __init__(self, items: list[Any]) -> None:
        self._items = list(items)
        self.closed = False

    async def __aenter__(self) -> "FakeStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> Any:
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


def _completion(
    content: Optional[str] = None,
    finish_reason: str = "stop",
    tool_calls: Optional[list[dict[str, Any]]] = None,
    **message_extra: Any,
) -> ChatCompletion:
    message: dict[str, Any] = {"role": "assistant", "content": content, **message_extra}
    if tool_calls is not None:
        message["tool_calls"] = tool_calls
    return ChatCompletion.model_validate(
        {
            "id": "cmpl-1",
            "object": "chat.completion",
            "created": 0,
            "model": "gpt-4o",
            "choices": [{"index": 0, "finish_reason": finish_reason, "message": message}],
        }
    )


def _chunk(**delta: Any) -> ChatCompletionChunk:
    return ChatCompletionChunk.model_validate(
        {
            "id": "chunk-1",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "gpt-4o",
            "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
        }
    )


def tool_call_dict(call_id: str, name: str, arguments: str) -> dict[str, Any]:
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


@pytest.fixture
def make_completion():
    return _completion


@pytest.fixture
def make_chunk():
    return _chunk


@pytest.fixture
def fake_stream():
    return FakeStream


@pytest.fixture
def make_tool_call():
    return tool_call_dict


@pytest.fixture
def weather_tool():
    from llm_relay.types import ToolDefinition

    return ToolDefinition(
        name="get_weather",
        description="Get the current weather in a given location",
        input_schema={
            "type": "object",
            "properties": {
                "location": {
                    "type": "string",
                    "description": "City and state, e.g. San Francisco, CA",
                },
            },
            "required": ["location"],
        },
    )
