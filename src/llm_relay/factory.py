from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final, Optional

from llm_relay._exceptions import ProviderConfigError
from llm_relay.providers import (
    MAX_TOKENS_ENV,
    Provider,
    get_api_key,
    get_ollama_base_url,
)
from llm_relay.providers.anthropic import AnthropicLLM
from llm_relay.providers.base import BaseAsyncLLM
from llm_relay.providers.ollama import OllamaLLM
from llm_relay.providers.openai import OpenAILLM

__all__ = [
    "ProviderConfig",
    "create_provider",
    "KNOWN_MODELS",
    "DEFAULT_MODELS",
    "MAX_MODEL_NAME_LENGTH",
]

MAX_MODEL_NAME_LENGTH: Final = 128

# Known models for configuration dropdowns; any other model string is accepted.
KNOWN_MODELS: Final[dict[Provider, tuple[str, ...]]] = {
    Provider.ANTHROPIC: (
        "claude-sonnet-4-20250514",
        "claude-haiku-4-5-20251001",
        "claude-opus-4-6",
    ),
    Provider.OPENAI: (
        "gpt-4o",
        "gpt-4o-mini",
        "gpt-4-turbo",
        "o3-mini",
    ),
    Provider.OLLAMA: (
        "qwen3:30b-a3b-32k",
        "qwen3:30b-a3b",
        "qwen3:32b",
        "llama3.2",
        "llama3.1",
        "mistral",
    ),
}

DEFAULT_MODELS: Final[dict[Provider, str]] = {
    Provider.ANTHROPIC: "claude-sonnet-4-20250514",
    Provider.OPENAI: "gpt-4o",
    Provider.OLLAMA: "qwen3:30b-a3b-32k",
}


@dataclass
class ProviderConfig:
    """Everything needed to build a provider instance."""

    provider: Provider | str
    model: str
    api_key: Optional[str] = None
    endpoint: Optional[str] = None  # local servers only
    max_tokens: Optional[int] = None

    def validate(self) -> Provider:
        """Check the configuration and return the resolved ``Provider``."""
        try:
            provider = Provider(self.provider)
        except ValueError:
            raise ProviderConfigError(f"Unknown provider: {self.provider}") from None

        if not isinstance(self.model, str) or not self.model.strip():
            raise ProviderConfigError("Model name is required")
        if len(self.model) > MAX_MODEL_NAME_LENGTH:
            raise ProviderConfigError(
                f"Model name exceeds {MAX_MODEL_NAME_LENGTH} characters"
            )
        if self.max_tokens is not None and (
            not isinstance(self.max_tokens, int)
            or isinstance(self.max_tokens, bool)
            or self.max_tokens <= 0
        ):
            raise ProviderConfigError(
                f"max_tokens must be a positive integer, got {self.max_tokens!r}"
            )
        return provider

    @classmethod
    def from_env(cls, provider: Provider | str, model: Optional[str] = None) -> "ProviderConfig":
        """
        Build a config from environment variables (``.env`` files included).

        A missing API key is left as None so ``create_provider`` reports it.
        """
        try:
            resolved = Provider(provider)
        except ValueError:
            raise ProviderConfigError(f"Unknown provider: {provider}") from None

        api_key: Optional[str] = None
        if not resolved.is_local:
            try:
                api_key = get_api_key(resolved)
            except RuntimeError:
                api_key = None

        raw_max_tokens = os.environ.get(MAX_TOKENS_ENV)
        try:
            max_tokens = int(raw_max_tokens) if raw_max_tokens else None
        except ValueError:
            raise ProviderConfigError(
                f"{MAX_TOKENS_ENV} must be an integer, got {raw_max_tokens!r}"
            ) from None

        return cls(
            provider=resolved,
            model=model or DEFAULT_MODELS[resolved],
            api_key=api_key,
            endpoint=get_ollama_base_url() if resolved.is_local else None,
            max_tokens=max_tokens,
        )


def create_provider(
    config: ProviderConfig,
    *,
    logger: logging.Logger | None = None,
    **provider_kwargs: object,
) -> BaseAsyncLLM:
    """
    Factory for creating any supported provider.

    Args:
        config: Provider name, model, credentials and endpoint.
        logger: Optional custom logger.
        **provider_kwargs: Any extra args to pass through (timeout, max_retries).

    Raises:
        ProviderConfigError: invalid config, or a hosted provider without an
            API key. Raised before any network call.
    """
    provider = config.validate()

    if provider is Provider.ANTHROPIC:
        if not config.api_key:
            raise ProviderConfigError("Anthropic API key is required")
        return AnthropicLLM(
            config.model,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
            logger=logger,
            **provider_kwargs,
        )

    if provider is Provider.OPENAI:
        if not config.api_key:
            raise ProviderConfigError("OpenAI API key is required")
        return OpenAILLM(
            config.model,
            api_key=config.api_key,
            max_tokens=config.max_tokens,
            logger=logger,
            **provider_kwargs,
        )

    try:
        return OllamaLLM(
            config.model,
            base_url=config.endpoint,
            max_tokens=config.max_tokens,
            logger=logger,
            **provider_kwargs,
        )
    except ValueError as exc:
        raise ProviderConfigError(str(exc)) from exc
