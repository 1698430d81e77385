from __future__ import annotations

import argparse
import asyncio
import logging

from llm_relay import (
    Provider,
    ProviderConfig,
    ToolCall,
    ToolCapabilityCache,
    ToolDefinition,
    ToolResultTurn,
    ToolsNotSupportedError,
    ToolUseMessage,
    UserTurn,
    capability_key,
    create_provider,
    should_use_tools,
)
from llm_relay.transcript import flatten_for_chat_complete, last_assistant_text

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

MAX_ROUNDS = 5

WEATHER_TOOL = ToolDefinition(
    name="get_weather",
    description="Get the current weather in a given location",
    input_schema={
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City and state, e.g. San Francisco, CA",
            },
            "unit": {
                "type": "string",
                "enum": ["celsius", "fahrenheit"],
            },
        },
        "required": ["location"],
    },
)


def run_local_tool(call: ToolCall) -> str:
    """Stub implementation of get_weather."""
    return f"15 °C, mostly cloudy in {call.input.get('location', 'somewhere')}"


async def tool_loop(provider: Provider, model: str | None, cache: ToolCapabilityCache) -> None:
    """
    Answer a question, using tools when the model is known (or not yet known)
    to support them, and record what was observed in the capability cache.
    """
    config = ProviderConfig.from_env(provider, model)
    system_prompt = "You are a helpful assistant. Use tools when they help."

    async with create_provider(config) as llm:
        endpoint = getattr(llm, "endpoint", None)
        key = capability_key(provider, llm.model, endpoint)
        messages: list[ToolUseMessage] = [UserTurn("What's the weather in San Francisco?")]

        if not should_use_tools(llm, provider, llm.model, cache, endpoint=endpoint):
            response = await llm.chat_complete(flatten_for_chat_complete(messages), system_prompt)
            logger.info("Plain answer: %s", response.content or response.error)
            return

        used_tools = False
        for _ in range(MAX_ROUNDS):
            try:
                rsp = await llm.create_tool_use_message(
                    messages=messages, system_prompt=system_prompt, tools=[WEATHER_TOOL]
                )
            except ToolsNotSupportedError:
                cache.record_not_supported(key)
                response = await llm.chat_complete(
                    flatten_for_chat_complete(messages), system_prompt
                )
                logger.info("Fallback answer: %s", response.content or response.error)
                return

            messages.append(rsp.to_assistant_turn())
            if not rsp.wants_tools:
                break

            used_tools = True
            cache.record_tool_use(key)
            for call in rsp.tool_calls:
                messages.append(
                    ToolResultTurn(
                        tool_call_id=call.id,
                        content=run_local_tool(call),
                        tool_name=call.name,
                    )
                )

        if used_tools:
            cache.record_supported(key)
        else:
            cache.record_no_tool_call(key)

        logger.info("%s says: %s", llm.name, last_assistant_text(messages))
        logger.info("Capability for %s: %s", key, cache.get_by_key(key))


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=Provider.OLLAMA.value,
    )
    parser.add_argument("--model", default=None)
    args = parser.parse_args()

    asyncio.run(tool_loop(Provider(args.provider), args.model, ToolCapabilityCache()))
