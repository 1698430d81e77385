"""Stream a reply and run a single-shot completion with any configured provider."""

import argparse
import asyncio
import logging

from llm_relay import Provider, ProviderConfig, create_provider

logging.basicConfig(level=logging.INFO)


async def main(provider: Provider, model: str | None) -> None:
    config = ProviderConfig.from_env(provider, model)

    async with create_provider(config) as llm:
        messages = [{"role": "user", "content": "What is the capital of Italy?"}]

        print(f"=== Streaming from {llm.name}:{llm.model} ===")
        async for text in llm.chat(messages, "You are a helpful assistant."):
            print(text, end="", flush=True)
        print()

        messages.append({"role": "assistant", "content": "Rome."})
        messages.append({"role": "user", "content": "And of Spain?"})
        response = await llm.chat_complete(messages, "Answer in one word.")
        if response.is_error:
            print(f"Error: {response.error}")
        else:
            print(f"Single-shot: {response.content}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=Provider.OLLAMA.value,
    )
    parser.add_argument("--model", default=None)
    args = parser.parse_args()

    asyncio.run(main(Provider(args.provider), args.model))
