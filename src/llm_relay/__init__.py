"""
LLM Relay - one chat and tool-use contract over Anthropic, OpenAI and Ollama,
with runtime discovery of tool-calling support.
"""

import logging

from ._exceptions import (
    EmptyResponseError,
    LLMRelayError,
    ProviderConfigError,
    RequestCancelledError,
    TranscriptError,
)
from .capabilities import (
    ToolCapability,
    ToolCapabilityCache,
    capability_key,
    should_use_tools,
)
from .errors import ToolsNotSupportedError, maybe_wrap_tools_not_supported
from .factory import (
    DEFAULT_MODELS,
    KNOWN_MODELS,
    ProviderConfig,
    create_provider,
)
from .providers import Provider, get_api_key
from .providers.anthropic import AnthropicLLM
from .providers.base import BaseAsyncLLM, ToolCapableLLM, is_tool_capable
from .providers.ollama import OllamaLLM, normalize_ollama_url
from .providers.openai import OpenAILLM
from .types import (
    AssistantTurn,
    ChatMessage,
    ChatResponse,
    ToolCall,
    ToolDefinition,
    ToolResultTurn,
    ToolUseMessage,
    ToolUseResponse,
    UserTurn,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "BaseAsyncLLM",
    "ToolCapableLLM",
    "is_tool_capable",
    "AnthropicLLM",
    "OpenAILLM",
    "OllamaLLM",
    "normalize_ollama_url",
    "Provider",
    "get_api_key",
    "ProviderConfig",
    "create_provider",
    "KNOWN_MODELS",
    "DEFAULT_MODELS",
    "ToolCapability",
    "ToolCapabilityCache",
    "capability_key",
    "should_use_tools",
    "ToolsNotSupportedError",
    "maybe_wrap_tools_not_supported",
    "LLMRelayError",
    "EmptyResponseError",
    "RequestCancelledError",
    "ProviderConfigError",
    "TranscriptError",
    "ChatMessage",
    "ChatResponse",
    "ToolDefinition",
    "ToolCall",
    "UserTurn",
    "AssistantTurn",
    "ToolResultTurn",
    "ToolUseMessage",
    "ToolUseResponse",
]
