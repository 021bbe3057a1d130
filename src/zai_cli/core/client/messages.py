"""
Conversation message types for Zai CLI.

These are the provider-facing shapes of a chat: a list of user/assistant
messages going out, a ChatResponse with usage coming back.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MessageRole(Enum):
    """Message roles in a conversation."""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A message in a conversation."""
    role: MessageRole
    content: str

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role=MessageRole.USER, content=text)

    @classmethod
    def assistant(cls, text: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=text)

    def to_api(self) -> Dict[str, Any]:
        """Convert to the messages API shape (a single text block)."""
        return {
            "role": self.role.value,
            "content": [{"type": "text", "text": self.content}],
        }


class Usage(BaseModel):
    """Token usage reported by the API."""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class ChatResponse(BaseModel):
    """A complete (non-streamed) model reply."""
    text: str = ""
    model: Optional[str] = None
    stop_reason: Optional[str] = None
    usage: Usage = Field(default_factory=Usage)


def to_api_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    """Convert messages to API format, dropping empty ones."""
    return [message.to_api() for message in messages if message.content.strip()]
