"""
Vector store that batches upserts into a vector index and decodes query hits
back into documents.
"""

import asyncio
import logging
import uuid
from typing import Any, List, Optional, Sequence, Union

from config.settings import settings
from core.documents import Document, ScoredResult
from core.errors import PartialBatchFailure, UpstreamFailure, ValidationError
from core.metadata_codec import decode_metadata, encode_metadata
from interfaces.iembedding_provider import IEmbeddingProvider
from interfaces.ivector_index import IVectorIndex, VectorRecord
from utils.async_caller import AsyncCaller
from utils.helpers import chunk_array

from . import VectorStoreAdapter, validate_delete_params, validate_top_k

logger = logging.getLogger(__name__)

UPSERT_CHUNK_SIZE = 1000


def _as_upstream_failure(exc: Exception, message: str, service: str) -> UpstreamFailure:
    if isinstance(exc, UpstreamFailure):
        return exc
    failure = UpstreamFailure(f"{message}: {exc}", service=service, status=getattr(exc, "status_code", None),
                              detail=repr(exc))
    failure.__cause__ = exc
    return failure


class BatchedVectorStore(VectorStoreAdapter):
    """
    Stores documents in a vector index.

    Upserts are split into chunks of at most ``chunk_size`` records; every
    chunk is sent through the store's AsyncCaller, which bounds how many
    requests are in flight. The document text travels in the metadata record
    under RESERVED_TEXT_KEY.

    Args:
        embeddings: Embedding provider used by add_documents and text queries
        index: Vector index (IVectorIndex or any object with the same coroutines)
        filter: Default filter applied when a query passes none
        caller: Shared AsyncCaller; built from caller_kwargs when omitted
        chunk_size: Maximum records per upsert request
    """

    def __init__(self, embeddings: Optional[IEmbeddingProvider], index: IVectorIndex,
                 filter: Optional[Any] = None, caller: Optional[AsyncCaller] = None,
                 chunk_size: Optional[int] = None, **caller_kwargs):
        super().__init__(embeddings)
        if index is None:
            raise ValidationError("A vector index is required")
        self.index = index
        self.filter = filter
        self.caller = caller or AsyncCaller(**caller_kwargs)
        self.chunk_size = chunk_size if chunk_size is not None else (settings.UPSERT_CHUNK_SIZE or UPSERT_CHUNK_SIZE)
        if self.chunk_size <= 0:
            raise ValidationError(f"chunk_size must be positive, got {self.chunk_size}")

    @property
    def vectorstore_type(self) -> str:
        return getattr(self.index, "index_type", type(self.index).__name__.lower())

    async def add_documents(self, documents: Sequence[Document],
                            ids: Optional[Sequence[str]] = None) -> List[str]:
        """
        Embed documents and upsert them.

        Args:
            documents: Documents to store
            ids: Optional ids, one per document

        Returns:
            The ids of the documents, in input order
        """
        if ids is not None and len(ids) != len(documents):
            raise ValidationError(f"Got {len(documents)} documents but {len(ids)} ids")
        if not documents:
            return []
        if self.embeddings is None:
            raise ValidationError("add_documents requires an embedding provider")

        texts = [document.page_content for document in documents]
        try:
            vectors = await self.embeddings.embed_documents(texts)
        except Exception as e:
            logger.error(f"Embedding {len(texts)} documents failed: {e}")
            raise _as_upstream_failure(e, "Embedding documents failed", "embeddings")

        if len(vectors) != len(documents):
            raise UpstreamFailure(f"Embedding provider returned {len(vectors)} vectors for {len(documents)} documents",
                                  service="embeddings")

        return await self.add_vectors(vectors, documents, ids=ids)

    async def add_vectors(self, vectors: Sequence[Sequence[float]], documents: Sequence[Document],
                          ids: Optional[Sequence[str]] = None) -> List[str]:
        """
        Upsert precomputed vectors in chunks.

        Args:
            vectors: One vector per document
            documents: Documents to store
            ids: Optional ids, one per vector; uuid4 strings are generated otherwise

        Returns:
            The ids of the documents, in input order
        """
        if len(vectors) != len(documents):
            raise ValidationError(f"Got {len(vectors)} vectors but {len(documents)} documents")

        if ids is None:
            document_ids = [str(uuid.uuid4()) for _ in vectors]
        else:
            document_ids = list(ids)
            if len(document_ids) != len(vectors):
                raise ValidationError(f"Got {len(vectors)} vectors but {len(document_ids)} ids")
            if len(set(document_ids)) != len(document_ids):
                raise ValidationError("ids must be unique within one upsert")

        records: List[VectorRecord] = [
            {"id": document_id, "vector": list(vector), "metadata": encode_metadata(document)}
            for document_id, vector, document in zip(document_ids, vectors, documents)
        ]

        chunks = chunk_array(records, self.chunk_size)
        if not chunks:
            return document_ids

        logger.debug(f"Upserting {len(records)} vectors in {len(chunks)} chunk(s)")
        results = await asyncio.gather(
            *(self.caller.call(self.index.upsert, chunk) for chunk in chunks),
            return_exceptions=True,
        )

        failed = [(i, result) for i, result in enumerate(results) if isinstance(result, BaseException)]
        for _, result in failed:
            if not isinstance(result, Exception):
                raise result

        if failed:
            if len(chunks) == 1:
                error = failed[0][1]
                logger.error(f"Upsert of {len(records)} vectors failed: {error}")
                raise _as_upstream_failure(error, "Upsert failed", self.vectorstore_type)

            failed_chunks = [i for i, _ in failed]
            id_ranges = [(chunks[i][0]["id"], chunks[i][-1]["id"]) for i in failed_chunks]
            errors = [error for _, error in failed]
            logger.error(f"Upsert failed for chunk(s) {failed_chunks} of {len(chunks)}: {errors[0]}")
            raise PartialBatchFailure(
                f"Upsert failed for chunk(s) {failed_chunks} of {len(chunks)} "
                f"(first failing chunk ids {id_ranges[0][0]}..{id_ranges[0][1]}): {errors[0]}",
                failed_chunks=failed_chunks,
                total_chunks=len(chunks),
                id_ranges=id_ranges,
                errors=errors,
                service=self.vectorstore_type,
            ) from errors[0]

        return document_ids

    async def delete(self, ids: Optional[Union[str, Sequence[str]]] = None, delete_all: bool = False) -> None:
        """
        Delete vectors by id, or reset the whole index.

        Args:
            ids: One id or a non-empty sequence of ids
            delete_all: Drop every vector in the index
        """
        id_list = validate_delete_params(ids, delete_all)
        try:
            if delete_all:
                await self.index.reset()
                logger.info(f"Reset {self.vectorstore_type} index")
            else:
                await self.index.delete(id_list)
                logger.debug(f"Deleted {len(id_list)} vectors")
        except Exception as e:
            logger.error(f"Delete failed: {e}")
            raise _as_upstream_failure(e, "Delete failed", self.vectorstore_type)

    async def _run_query(self, query: Sequence[float], k: int, filter: Optional[Any] = None,
                         include_vectors: bool = False):
        params = {
            "vector": list(query),
            "top_k": k,
            "include_metadata": True,
        }
        if include_vectors:
            params["include_vectors"] = True
        if filter is not None:
            params["filter"] = filter
        try:
            return await self.caller.call(self.index.query, **params)
        except Exception as e:
            logger.error(f"Similarity query failed: {e}")
            raise _as_upstream_failure(e, "Similarity query failed", self.vectorstore_type)

    async def similarity_search_vector_with_score(self, query: Sequence[float], k: int,
                                                  filter: Optional[Any] = None) -> List[ScoredResult]:
        """
        Search the index with a query vector.

        Args:
            query: Query vector
            k: Number of results to request
            filter: Index-specific filter, passed through unchanged

        Returns:
            (document, score) tuples in the order returned by the index; fewer
            than k when the index holds fewer vectors
        """
        validate_top_k(k)
        results = await self._run_query(query, k, filter if filter is not None else self.filter)
        return [(decode_metadata(hit.metadata), hit.score) for hit in results]

    @classmethod
    async def from_existing_index(cls, embeddings: Optional[IEmbeddingProvider], **kwargs) -> "BatchedVectorStore":
        return cls(embeddings, **kwargs)
