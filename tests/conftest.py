"""
Shared fixtures: an in-memory vector index and a deterministic embedding provider.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

import pytest

from interfaces.iembedding_provider import IEmbeddingProvider
from interfaces.ivector_index import IVectorIndex, QueryHit
from utils.async_caller import AsyncCaller


class InMemoryIndex(IVectorIndex):
    """Records every upsert chunk; rejects chunks containing any id in fail_ids."""

    index_type = "memory"

    def __init__(self, fail_ids: Optional[Sequence[str]] = None, error: Optional[Exception] = None):
        self.records: Dict[str, Dict[str, Any]] = {}
        self.upsert_calls: List[List[Dict[str, Any]]] = []
        self.query_calls: List[Dict[str, Any]] = []
        self.deleted: List[List[str]] = []
        self.reset_count = 0
        self.fail_ids = set(fail_ids or [])
        self.error = error or RuntimeError("upsert rejected")

    async def upsert(self, vectors):
        self.upsert_calls.append(list(vectors))
        if any(record["id"] in self.fail_ids for record in vectors):
            raise self.error
        for record in vectors:
            self.records[record["id"]] = record
        return "Success"

    async def query(self, vector, top_k, include_metadata=True, include_vectors=False, filter=None):
        self.query_calls.append({"vector": vector, "top_k": top_k, "filter": filter})
        scored = []
        for record_id, record in self.records.items():
            dot = sum(a * b for a, b in zip(vector, record["vector"]))
            norm = math.sqrt(sum(a * a for a in vector)) * math.sqrt(sum(b * b for b in record["vector"]))
            scored.append(QueryHit(id=record_id, score=dot / norm if norm else 0.0,
                                   metadata=dict(record["metadata"]) if include_metadata else None))
        scored.sort(key=lambda hit: hit.score, reverse=True)
        return scored[:top_k]

    async def delete(self, ids):
        self.deleted.append(list(ids))
        for record_id in ids:
            self.records.pop(record_id, None)
        return len(ids)

    async def reset(self):
        self.reset_count += 1
        self.records.clear()
        return "Success"


class FakeEmbeddings(IEmbeddingProvider):
    """Maps known words to fixed vectors."""

    def __init__(self, table: Optional[Dict[str, List[float]]] = None):
        self.table = table or {"cat": [1.0, 0.0], "dog": [0.0, 1.0]}
        self.calls: List[List[str]] = []

    @property
    def dimensions(self) -> int:
        return 2

    async def embed_documents(self, texts):
        self.calls.append(list(texts))
        return [self.table.get(text, [0.5, 0.5]) for text in texts]

    async def embed_query(self, query):
        return self.table.get(query, [0.5, 0.5])


@pytest.fixture
def index():
    return InMemoryIndex()


@pytest.fixture
def embeddings():
    return FakeEmbeddings()


@pytest.fixture
def caller():
    """Caller without retries so failures surface on the first attempt."""
    return AsyncCaller(max_concurrency=4, max_retries=0, retry_delay=0)
