"""
Provider‑neutral dataclasses for client‑side tool use.

They are intentionally minimal: everything provider‑specific lives in the
provider modules. The only vendor data that crosses this boundary is the
opaque ``raw_message`` of an assistant turn, which is replayed verbatim.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

__all__ = [
    "StopReason",
    "ToolDefinition",
    "ToolCall",
    "UserTurn",
    "AssistantTurn",
    "ToolResultTurn",
    "ToolUseMessage",
    "ToolUseResponse",
]

StopReason = Literal["end_turn", "tool_use", "max_tokens"]


@dataclass(slots=True)
class ToolDefinition:
    """A caller-defined tool, described by a JSON schema for its input."""
    name: str
    description: str
    input_schema: dict[str, Any]


@dataclass(slots=True)
class ToolCall:
    """A model‑agnostic request emitted by the LLM to call a local tool."""
    id: str
    name: str
    input: dict[str, Any]


@dataclass(slots=True)
class UserTurn:
    content: str
    role: Literal["user"] = field(default="user", init=False)


@dataclass(slots=True)
class AssistantTurn:
    """
    A prior assistant turn.

    ``raw_message`` is whatever the provider returned as
    ``ToolUseResponse.raw_assistant_message``. Neutral code never looks
    inside it; ``derived_text`` is only used for fallbacks and display.
    """
    raw_message: Any
    derived_text: str = ""
    role: Literal["assistant"] = field(default="assistant", init=False)


@dataclass(slots=True)
class ToolResultTurn:
    """Payload to send back to the LLM after the tool finished running."""
    tool_call_id: str           # must match ToolCall.id
    content: str
    tool_name: str = ""
    role: Literal["tool"] = field(default="tool", init=False)


ToolUseMessage = Union[UserTurn, AssistantTurn, ToolResultTurn]


@dataclass(slots=True)
class ToolUseResponse:
    """Normalized result of one non-streaming tool-use round."""
    stop_reason: StopReason
    text_content: str
    tool_calls: list[ToolCall]
    raw_assistant_message: Any

    def __post_init__(self) -> None:
        if bool(self.tool_calls) != (self.stop_reason == "tool_use"):
            raise ValueError(
                f"stop_reason={self.stop_reason!r} is inconsistent with "
                f"{len(self.tool_calls)} tool call(s)"
            )

    @property
    def wants_tools(self) -> bool:
        return self.stop_reason == "tool_use"

    def to_assistant_turn(self) -> AssistantTurn:
        """Return the turn to append to the transcript for the next round."""
        return AssistantTurn(
            raw_message=self.raw_assistant_message,
            derived_text=self.text_content,
        )
