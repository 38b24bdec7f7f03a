"""
Abstract interface for key-value byte stores.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional, Sequence, Tuple


class IByteStore(ABC):
    """Abstract interface for key-value stores holding raw bytes."""

    @abstractmethod
    async def mget(self, keys: Sequence[str]) -> List[Optional[bytes]]:
        """
        Get the values of several keys.

        Args:
            keys: Keys to retrieve

        Returns:
            One value per key, None where the key is missing
        """
        pass

    @abstractmethod
    async def mset(self, key_value_pairs: Sequence[Tuple[str, bytes]]) -> None:
        """
        Set several keys.

        Args:
            key_value_pairs: (key, value) pairs to store
        """
        pass

    @abstractmethod
    async def mdelete(self, keys: Sequence[str]) -> None:
        """
        Delete several keys.

        Args:
            keys: Keys to delete
        """
        pass

    @abstractmethod
    def yield_keys(self, prefix: Optional[str] = None) -> AsyncIterator[str]:
        """
        Lazily iterate over stored keys.

        Args:
            prefix: Only yield keys starting with this prefix

        Returns:
            Async iterator of keys
        """
        pass
