"""Tests for the OpenAI provider: request building, normalization, tool rounds."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from llm_relay import (
    AssistantTurn,
    EmptyResponseError,
    LLMRelayError,
    RequestCancelledError,
    ToolResultTurn,
    ToolsNotSupportedError,
    UserTurn,
)
from llm_relay.providers.openai import OpenAILLM, OpenAIRequestAdapter, map_finish_reason
from llm_relay.transcript import synthesize_historical_raw_message


@pytest.fixture
def adapter():
    return OpenAIRequestAdapter()


@pytest.fixture
def llm():
    provider = OpenAILLM("gpt-4o", api_key="sk-test")
    provider._client = MagicMock()
    provider._client.chat.completions.create = AsyncMock()
    return provider


class TestOpenAIRequestAdapter:
    """Pure request/response transformations."""

    def test_build_messages_puts_system_prompt_first(self, adapter):
        result = adapter.build_messages(
            [{"role": "user", "content": "Hello"}, {"role": "assistant", "content": "Hi!"}],
            "You are helpful",
        )

        assert result == [
            {"role": "system", "content": "You are helpful"},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi!"},
        ]

    def test_build_tools_renames_schema_without_copying(self, adapter, weather_tool):
        schema_before = dict(weather_tool.input_schema)

        tools = adapter.build_tools([weather_tool])

        assert tools[0]["type"] == "function"
        assert tools[0]["function"]["name"] == "get_weather"
        assert tools[0]["function"]["parameters"] is weather_tool.input_schema
        assert weather_tool.input_schema == schema_before
        assert "input_schema" not in tools[0]["function"]

    def test_build_tool_messages(self, adapter, make_completion, make_tool_call):
        raw = make_completion(
            finish_reason="tool_calls",
            tool_calls=[make_tool_call("call_1", "get_weather", '{"location": "SF"}')],
        ).choices[0].message
        messages = [
            UserTurn("Weather in SF?"),
            AssistantTurn(raw_message=raw),
            ToolResultTurn(tool_call_id="call_1", content="15 C", tool_name="get_weather"),
        ]

        result = adapter.build_tool_messages(messages, "sys")

        assert result[0] == {"role": "system", "content": "sys"}
        assert result[1] == {"role": "user", "content": "Weather in SF?"}
        assert result[2]["role"] == "assistant"
        assert result[2]["tool_calls"][0]["id"] == "call_1"
        assert result[2]["tool_calls"][0]["function"]["arguments"] == '{"location": "SF"}'
        assert result[3] == {"role": "tool", "tool_call_id": "call_1", "content": "15 C"}

    def test_build_tool_messages_passes_dict_raw_message(self, adapter):
        raw = synthesize_historical_raw_message("openai", "Earlier answer")

        result = adapter.build_tool_messages([AssistantTurn(raw_message=raw)], "sys")

        assert result[1] == {"role": "assistant", "content": "Earlier answer"}

    def test_max_completion_tokens_for_reasoning_models(self, adapter):
        assert adapter.build_params("o3-mini", 100) == {"max_completion_tokens": 100}
        assert adapter.build_params("gpt-4o", 100) == {"max_tokens": 100}

    def test_parse_tool_call_invalid_json_becomes_empty_input(self, adapter):
        tc = SimpleNamespace(id="id1", function=SimpleNamespace(name="test", arguments="{not valid"))

        call = adapter.parse_tool_call(tc)

        assert call.id == "id1"
        assert call.name == "test"
        assert call.input == {}

    def test_parse_tool_call_non_object_arguments(self, adapter):
        tc = SimpleNamespace(id="id1", function=SimpleNamespace(name="test", arguments="[1, 2]"))

        assert adapter.parse_tool_call(tc).input == {}

    @pytest.mark.parametrize(
        "tc, missing",
        [
            (SimpleNamespace(id="", function=SimpleNamespace(name="x", arguments="{}")), "id"),
            (SimpleNamespace(id="c1", function=SimpleNamespace(name="", arguments="{}")), "function.name"),
            (SimpleNamespace(id="c1", function=None), "function.name"),
        ],
    )
    def test_parse_tool_call_malformed_is_capability_signal(self, adapter, tc, missing):
        with pytest.raises(ToolsNotSupportedError, match=f"missing {missing}"):
            adapter.parse_tool_call(tc)

    def test_tool_use_response_requires_a_choice(self, adapter, make_completion):
        completion = make_completion(content="x")
        completion.choices = []

        with pytest.raises(EmptyResponseError):
            adapter.tool_use_response(completion)

    def test_stop_with_tool_calls_is_tool_use(self, adapter, make_completion, make_tool_call):
        completion = make_completion(
            finish_reason="stop",
            tool_calls=[make_tool_call("call_1", "get_weather", "{}")],
        )

        response = adapter.tool_use_response(completion)

        assert response.stop_reason == "tool_use"
        assert len(response.tool_calls) == 1

    def test_tool_calls_finish_without_calls_is_end_turn(self, adapter, make_completion):
        response = adapter.tool_use_response(
            make_completion(content="done", finish_reason="tool_calls")
        )

        assert response.stop_reason == "end_turn"
        assert response.tool_calls == []

    def test_truncated_response_drops_tool_calls(self, adapter, make_completion, make_tool_call):
        completion = make_completion(
            finish_reason="length",
            tool_calls=[make_tool_call("call_1", "get_weather", '{"loc')],
        )

        response = adapter.tool_use_response(completion)

        assert response.stop_reason == "max_tokens"
        assert response.tool_calls == []
        assert response.raw_assistant_message is completion.choices[0].message


@pytest.mark.parametrize(
    "finish_reason, expected",
    [
        ("tool_calls", "tool_use"),
        ("length", "max_tokens"),
        ("stop", "end_turn"),
        ("content_filter", "end_turn"),
        ("function_call", "end_turn"),
        (None, "end_turn"),
    ],
)
def test_map_finish_reason(finish_reason, expected):
    assert map_finish_reason(finish_reason) == expected


def test_provider_name():
    assert OpenAILLM("gpt-4o", api_key="sk-test").name == "openai"


class TestOpenAILLM:
    """Provider I/O against a mocked AsyncOpenAI client."""

    @pytest.mark.asyncio
    async def test_tool_round_trip(self, llm, weather_tool, make_completion, make_tool_call):
        create = llm._client.chat.completions.create
        create.return_value = make_completion(
            finish_reason="tool_calls",
            tool_calls=[make_tool_call("call_1", "get_weather", '{"location": "San Francisco"}')],
        )
        messages = [UserTurn("What's the weather in San Francisco?")]

        first = await llm.create_tool_use_message(
            messages=messages, system_prompt="sys", tools=[weather_tool]
        )

        assert first.stop_reason == "tool_use"
        assert len(first.tool_calls) == 1
        call = first.tool_calls[0]
        assert (call.id, call.name, call.input) == (
            "call_1",
            "get_weather",
            {"location": "San Francisco"},
        )
        first_args = create.call_args.kwargs
        assert first_args["stream"] is False
        assert first_args["tools"][0]["function"]["parameters"] is weather_tool.input_schema

        messages.append(first.to_assistant_turn())
        messages.append(ToolResultTurn(tool_call_id=call.id, content="15 C, cloudy", tool_name=call.name))
        create.return_value = make_completion(content="It is 15 C and cloudy.", finish_reason="stop")

        second = await llm.create_tool_use_message(
            messages=messages, system_prompt="sys", tools=[weather_tool]
        )

        assert second.stop_reason == "end_turn"
        assert second.text_content == "It is 15 C and cloudy."
        assert second.tool_calls == []
        sent = create.call_args.kwargs["messages"]
        assert sent[2]["tool_calls"][0]["id"] == "call_1"
        assert sent[3] == {"role": "tool", "tool_call_id": "call_1", "content": "15 C, cloudy"}

    @pytest.mark.asyncio
    async def test_no_tools_omits_tools_field(self, llm, make_completion):
        llm._client.chat.completions.create.return_value = make_completion(content="hi")

        await llm.create_tool_use_message(messages=[UserTurn("hi")], system_prompt="s", tools=[])

        assert "tools" not in llm._client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_tools_rejection_is_wrapped(self, llm, weather_tool):
        original = RuntimeError("registry.ollama.ai/library/gemma does not support tools")
        llm._client.chat.completions.create.side_effect = original

        with pytest.raises(ToolsNotSupportedError) as exc_info:
            await llm.create_tool_use_message(
                messages=[UserTurn("hi")], system_prompt="s", tools=[weather_tool]
            )

        assert exc_info.value.original_exc is original

    @pytest.mark.asyncio
    async def test_unrelated_errors_propagate_unchanged(self, llm, weather_tool):
        original = TimeoutError("network timeout")
        llm._client.chat.completions.create.side_effect = original

        with pytest.raises(TimeoutError) as exc_info:
            await llm.create_tool_use_message(
                messages=[UserTurn("hi")], system_prompt="s", tools=[weather_tool]
            )

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_chat_streams_only_content(self, llm, make_chunk, fake_stream):
        stream = fake_stream(
            [
                make_chunk(role="assistant"),
                make_chunk(content="Hel"),
                make_chunk(
                    tool_calls=[{"index": 0, "id": "c1", "function": {"name": "f", "arguments": ""}}]
                ),
                make_chunk(content="lo"),
            ]
        )
        llm._client.chat.completions.create.return_value = stream

        chunks = [c async for c in llm.chat([{"role": "user", "content": "hi"}], "sys")]

        assert chunks == ["Hel", "lo"]
        assert stream.closed
        args = llm._client.chat.completions.create.call_args.kwargs
        assert args["stream"] is True
        assert args["messages"][0] == {"role": "system", "content": "sys"}

    @pytest.mark.asyncio
    async def test_chat_cancellation_closes_stream(self, llm, make_chunk, fake_stream):
        stream = fake_stream([make_chunk(content="a"), make_chunk(content="b")])
        llm._client.chat.completions.create.return_value = stream
        signal = asyncio.Event()
        received = []

        with pytest.raises(RequestCancelledError):
            async for text in llm.chat([{"role": "user", "content": "hi"}], "sys", signal=signal):
                received.append(text)
                signal.set()

        assert received == ["a"]
        assert stream.closed

    @pytest.mark.asyncio
    async def test_tool_round_cancellation(self, llm, weather_tool):
        async def slow_create(**kwargs):
            await asyncio.sleep(10)

        llm._client.chat.completions.create.side_effect = slow_create
        signal = asyncio.Event()

        task = asyncio.create_task(
            llm.create_tool_use_message(
                messages=[UserTurn("hi")], system_prompt="s", tools=[weather_tool], signal=signal
            )
        )
        await asyncio.sleep(0.01)
        signal.set()

        with pytest.raises(RequestCancelledError):
            await asyncio.wait_for(task, timeout=1)

    @pytest.mark.asyncio
    async def test_chat_complete_returns_text(self, llm, make_completion):
        llm._client.chat.completions.create.return_value = make_completion(content="Done.")

        result = await llm.chat_complete([{"role": "user", "content": "hi"}], "sys")

        assert not result.is_error
        assert result.content == "Done."

    @pytest.mark.asyncio
    async def test_chat_complete_empty_content_is_error(self, llm, make_completion):
        llm._client.chat.completions.create.return_value = make_completion(content=None)

        result = await llm.chat_complete([{"role": "user", "content": "hi"}], "sys")

        assert result.is_error
        assert result.error == "No text content in response"

    @pytest.mark.asyncio
    async def test_chat_complete_wraps_errors(self, llm):
        llm._client.chat.completions.create.side_effect = ConnectionError("refused")

        result = await llm.chat_complete([{"role": "user", "content": "hi"}], "sys")

        assert result.is_error
        assert "refused" in result.error
        with pytest.raises(LLMRelayError):
            result.raise_for_error()
