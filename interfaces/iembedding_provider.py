"""
Abstract interface for Embedding Providers.
"""

from abc import ABC, abstractmethod
from typing import List

class IEmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for a list of texts, same length and order as the input."""
        pass

    @abstractmethod
    async def embed_query(self, query: str) -> List[float]:
        """Generate an embedding for a single query."""
        pass

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """The dimension of the embeddings produced by the model."""
        pass
