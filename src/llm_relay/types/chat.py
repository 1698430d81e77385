"""Plain chat types shared by every provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, TypedDict

from llm_relay._exceptions import LLMRelayError

__all__ = ["ChatMessage", "ChatResponse"]


class ChatMessage(TypedDict):
    """A conversational turn without tool data."""

    role: Literal["user", "assistant"]
    content: str


@dataclass
class ChatResponse:
    """Result of a single-shot completion: either text or an error message."""

    content: str
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        if self.is_error:
            raise LLMRelayError(self.error)

    def __bool__(self) -> bool:
        return not self.is_error

    def __repr__(self) -> str:
        if self.is_error:
            return f"{self.__class__.__name__}(error={self.error!r})"
        preview = self.content[:75] + "..." if len(self.content) > 75 else self.content
        return f"{self.__class__.__name__}(content_preview={preview!r})"
