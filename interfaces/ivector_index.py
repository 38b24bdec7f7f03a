"""
Abstract interface for vector indexes (the service that stores vectors).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypedDict, Union


class VectorRecord(TypedDict):
    id: str
    vector: List[float]
    metadata: Dict[str, Any]


@dataclass
class QueryHit:
    """One nearest-neighbour match as reported by the index."""

    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None
    vector: Optional[List[float]] = None


class IVectorIndex(ABC):
    """
    Abstract base class for vector indexes.

    Any object exposing the same coroutines (for example an Upstash
    ``AsyncIndex``) can be used wherever an IVectorIndex is expected.
    """

    @abstractmethod
    async def upsert(self, vectors: Sequence[VectorRecord]) -> Any:
        """Insert or overwrite the given records."""
        pass

    @abstractmethod
    async def query(self, vector: List[float], top_k: int, include_metadata: bool = True,
                    include_vectors: bool = False, filter: Optional[Any] = None) -> List[QueryHit]:
        """Return at most top_k nearest records, best match first."""
        pass

    @abstractmethod
    async def delete(self, ids: Union[str, Sequence[str]]) -> Any:
        """Delete records by id."""
        pass

    @abstractmethod
    async def reset(self) -> Any:
        """Delete every record in the index."""
        pass
