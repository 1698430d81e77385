"""
Helpers for tool-use transcripts kept by the calling tool loop.

They only reshape messages; nothing here knows what any tool does.
"""

from __future__ import annotations

from typing import Any, Sequence

from llm_relay._exceptions import TranscriptError
from llm_relay.providers import Provider
from llm_relay.types.chat import ChatMessage
from llm_relay.types.tool import AssistantTurn, ToolResultTurn, ToolUseMessage, UserTurn

__all__ = [
    "validate_transcript",
    "flatten_for_chat_complete",
    "synthesize_historical_raw_message",
    "history_to_tool_messages",
    "last_assistant_text",
]


def validate_transcript(messages: Sequence[ToolUseMessage]) -> None:
    """Raise TranscriptError on the first entry that cannot be sent to a provider."""
    for i, msg in enumerate(messages):
        if isinstance(msg, AssistantTurn):
            if msg.raw_message is None:
                raise TranscriptError(
                    f"Invalid transcript state at index {i}: assistant message missing raw_message"
                )
        elif isinstance(msg, ToolResultTurn):
            if not msg.tool_call_id:
                raise TranscriptError(
                    f"Invalid transcript state at index {i}: tool message missing tool_call_id"
                )
            if not msg.tool_name:
                raise TranscriptError(
                    f"Invalid transcript state at index {i}: tool message missing tool_name"
                )
            if not isinstance(msg.content, str):
                raise TranscriptError(
                    f"Invalid transcript state at index {i}: tool message content must be str"
                )
        elif not isinstance(msg, UserTurn):
            raise TranscriptError(
                f"Invalid transcript state at index {i}: unexpected {type(msg).__name__}"
            )


def flatten_for_chat_complete(messages: Sequence[ToolUseMessage]) -> list[ChatMessage]:
    """
    Turn a tool-use transcript into plain chat turns for ``chat_complete``.

    Adjacent messages are never merged; each tool result becomes its own
    user message.
    """
    result: list[ChatMessage] = []
    for msg in messages:
        if isinstance(msg, UserTurn):
            result.append({"role": "user", "content": msg.content})
        elif isinstance(msg, AssistantTurn):
            result.append({"role": "assistant", "content": msg.derived_text or ""})
        elif isinstance(msg, ToolResultTurn):
            result.append(
                {
                    "role": "user",
                    "content": f"[Tool result ({msg.tool_name}): {msg.content}]",
                }
            )
    return result


def synthesize_historical_raw_message(provider: Provider | str, content: str) -> Any:
    """
    Build a raw assistant payload for a history turn that predates the tool loop.

    The shape matches what the provider's converter replays: a content-block
    list for Anthropic, a message dict for OpenAI-style APIs.
    """
    if provider == Provider.ANTHROPIC:
        return [{"type": "text", "text": content}]
    return {"role": "assistant", "content": content}


def history_to_tool_messages(
    history: Sequence[ChatMessage], provider: Provider | str
) -> list[ToolUseMessage]:
    """Convert stored conversation history into the first rounds of a transcript."""
    messages: list[ToolUseMessage] = []
    for m in history:
        if m["role"] == "assistant":
            messages.append(
                AssistantTurn(
                    raw_message=synthesize_historical_raw_message(provider, m["content"]),
                    derived_text=m["content"],
                )
            )
        else:
            messages.append(UserTurn(content=m["content"]))
    return messages


def last_assistant_text(messages: Sequence[ToolUseMessage]) -> str:
    for msg in reversed(messages):
        if isinstance(msg, AssistantTurn):
            return msg.derived_text or ""
    return ""
