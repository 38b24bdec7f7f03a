"""
Chat message model persisted by the chat-log stores.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from core.errors import ValidationError

MESSAGE_TYPES = ("human", "ai", "system", "chat", "function", "tool")


@dataclass
class ChatMessage:
    """A single chat turn."""

    type: str
    content: str
    name: Optional[str] = None
    role: Optional[str] = None
    tool_call_id: Optional[str] = None
    additional_kwargs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.type not in MESSAGE_TYPES:
            raise ValidationError(f"Unknown message type: {self.type!r}")

    def to_stored(self) -> Dict[str, Any]:
        """Flat JSON object with the message type alongside its data."""
        return {
            "type": self.type,
            "content": self.content,
            "name": self.name,
            "role": self.role,
            "tool_call_id": self.tool_call_id,
            "additional_kwargs": dict(self.additional_kwargs),
        }

    @classmethod
    def from_stored(cls, data: Dict[str, Any]) -> "ChatMessage":
        data = dict(data)
        message_type = data.pop("type", None)
        if message_type is None:
            raise ValidationError("Stored message has no type")
        return cls(
            type=message_type,
            content=data.get("content", ""),
            name=data.get("name"),
            role=data.get("role"),
            tool_call_id=data.get("tool_call_id"),
            additional_kwargs=data.get("additional_kwargs") or {},
        )


def human(content: str, **kwargs) -> ChatMessage:
    return ChatMessage(type="human", content=content, **kwargs)


def ai(content: str, **kwargs) -> ChatMessage:
    return ChatMessage(type="ai", content=content, **kwargs)


def system(content: str, **kwargs) -> ChatMessage:
    return ChatMessage(type="system", content=content, **kwargs)
