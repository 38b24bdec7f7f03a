"""
Vector store adapters.
Provides the common surface shared by every store that answers similarity queries.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence, Union

from core.documents import Document, ScoredResult
from core.errors import ValidationError
from interfaces.iembedding_provider import IEmbeddingProvider


def validate_top_k(k: Any) -> int:
    if isinstance(k, bool) or not isinstance(k, int) or k <= 0:
        raise ValidationError(f"k must be a positive integer, got {k!r}")
    return k


def validate_delete_params(ids: Optional[Union[str, Sequence[str]]], delete_all: bool) -> Optional[List[str]]:
    """Exactly one of ids / delete_all must be given; returns ids as a list."""
    if delete_all and ids is not None:
        raise ValidationError("Specify either ids or delete_all, not both")
    if delete_all:
        return None
    if ids is None:
        raise ValidationError("Specify ids to delete or delete_all=True")
    id_list = [ids] if isinstance(ids, str) else list(ids)
    if not id_list:
        raise ValidationError("ids to delete must not be empty")
    return id_list


def documents_from_texts(texts: Sequence[str],
                         metadatas: Optional[Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]] = None) -> List[Document]:
    """Pair texts with metadata, either one mapping for all texts or one per text."""
    if metadatas is None or isinstance(metadatas, Mapping):
        return [Document(page_content=text, metadata=dict(metadatas or {})) for text in texts]
    if len(metadatas) != len(texts):
        raise ValidationError(f"Got {len(texts)} texts but {len(metadatas)} metadatas")
    return [Document(page_content=text, metadata=dict(metadata)) for text, metadata in zip(texts, metadatas)]


class VectorStoreAdapter(ABC):
    """Abstract base class for vector store adapters."""

    def __init__(self, embeddings: Optional[IEmbeddingProvider]):
        self.embeddings = embeddings

    @property
    @abstractmethod
    def vectorstore_type(self) -> str:
        """Return store type identifier."""
        pass

    @abstractmethod
    async def add_vectors(self, vectors: Sequence[Sequence[float]], documents: Sequence[Document],
                          ids: Optional[Sequence[str]] = None) -> List[str]:
        """Store precomputed vectors with their documents, returning the ids."""
        pass

    @abstractmethod
    async def add_documents(self, documents: Sequence[Document],
                            ids: Optional[Sequence[str]] = None) -> List[str]:
        """Embed and store documents, returning the ids."""
        pass

    @abstractmethod
    async def similarity_search_vector_with_score(self, query: Sequence[float], k: int,
                                                  filter: Optional[Any] = None) -> List[ScoredResult]:
        """Return the k closest documents to a query vector, with scores."""
        pass

    @abstractmethod
    async def delete(self, ids: Optional[Union[str, Sequence[str]]] = None, delete_all: bool = False) -> None:
        """Delete by ids, or everything."""
        pass

    async def add_texts(self, texts: Sequence[str], metadatas=None,
                        ids: Optional[Sequence[str]] = None) -> List[str]:
        return await self.add_documents(documents_from_texts(texts, metadatas), ids=ids)

    async def similarity_search_with_score(self, query: str, k: int = 4,
                                           filter: Optional[Any] = None) -> List[ScoredResult]:
        validate_top_k(k)
        if self.embeddings is None:
            raise ValidationError(f"{type(self).__name__} has no embeddings to embed the query")
        query_vector = await self.embeddings.embed_query(query)
        return await self.similarity_search_vector_with_score(query_vector, k, filter)

    async def similarity_search(self, query: str, k: int = 4, filter: Optional[Any] = None) -> List[Document]:
        results = await self.similarity_search_with_score(query, k, filter)
        return [document for document, _ in results]

    @classmethod
    async def from_texts(cls, texts: Sequence[str], metadatas, embeddings: Optional[IEmbeddingProvider], **kwargs):
        return await cls.from_documents(documents_from_texts(texts, metadatas), embeddings, **kwargs)

    @classmethod
    async def from_documents(cls, documents: Sequence[Document], embeddings: Optional[IEmbeddingProvider], **kwargs):
        instance = cls(embeddings, **kwargs)
        await instance.add_documents(documents)
        return instance
