"""
Abstract interface for chat message history stores.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from core.messages import ChatMessage


class IChatMessageHistory(ABC):
    """Abstract interface for per-session chat logs."""

    @abstractmethod
    async def add_message(self, message: ChatMessage) -> None:
        """
        Append a message to the session.

        Args:
            message: Message to store
        """
        pass

    async def add_messages(self, messages: Sequence[ChatMessage]) -> None:
        """Append several messages, in order."""
        for message in messages:
            await self.add_message(message)

    @abstractmethod
    async def get_messages(self) -> List[ChatMessage]:
        """
        Get the messages of the session in insertion order.

        Returns:
            List of messages
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every message of the session."""
        pass
