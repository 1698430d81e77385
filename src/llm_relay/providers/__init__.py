from __future__ import annotations

import os
from enum import StrEnum
from typing import Final, Optional

from dotenv import load_dotenv

load_dotenv()


class Provider(StrEnum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    OLLAMA = "ollama"

    @property
    def is_local(self) -> bool:
        """Local servers need no API key and are keyed by endpoint."""
        return self in LOCAL_PROVIDERS


LOCAL_PROVIDERS: Final[frozenset[Provider]] = frozenset({Provider.OLLAMA})

_ENV_VARS: Final[dict[Provider, str]] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
}

OLLAMA_BASE_URL_ENV: Final = "OLLAMA_BASE_URL"
MAX_TOKENS_ENV: Final = "LLM_RELAY_MAX_TOKENS"


def get_api_key(provider: Provider) -> str:
    """Return the API key for *provider* or raise RuntimeError."""
    try:
        env_var = _ENV_VARS[provider]
    except KeyError:
        raise RuntimeError(f"No API key config for {provider!s}") from None

    try:
        return os.environ[env_var]
    except KeyError as exc:
        raise RuntimeError(f"{env_var} missing") from exc


def get_ollama_base_url() -> Optional[str]:
    return os.environ.get(OLLAMA_BASE_URL_ENV) or None


__all__ = [
    "Provider",
    "LOCAL_PROVIDERS",
    "get_api_key",
    "get_ollama_base_url",
    "OLLAMA_BASE_URL_ENV",
    "MAX_TOKENS_ENV",
]
