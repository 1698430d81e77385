from .chat import ChatMessage, ChatResponse
from .tool import (
    AssistantTurn,
    StopReason,
    ToolCall,
    ToolDefinition,
    ToolResultTurn,
    ToolUseMessage,
    ToolUseResponse,
    UserTurn,
)

__all__ = [
    "ChatMessage",
    "ChatResponse",
    "StopReason",
    "ToolDefinition",
    "ToolCall",
    "UserTurn",
    "AssistantTurn",
    "ToolResultTurn",
    "ToolUseMessage",
    "ToolUseResponse",
]
