"""
Qdrant vector index adapter.
"""

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance, Filter, FilterSelector, PointIdsList, PointStruct, UpdateStatus, VectorParams,
)

from config.settings import settings
from core.errors import UpstreamFailure, ValidationError
from interfaces.ivector_index import IVectorIndex, QueryHit, VectorRecord

logger = logging.getLogger(__name__)

# Namespace for point ids derived from ids that are not UUIDs
POINT_ID_NAMESPACE = uuid.UUID("6f1c5e0a-3a7b-4f43-9a55-0d2b8c8e4b11")


def to_point_id(record_id: Union[str, int]) -> Union[str, int]:
    """Qdrant only accepts UUIDs and unsigned integers as point ids."""
    if isinstance(record_id, int) and not isinstance(record_id, bool) and record_id >= 0:
        return record_id
    try:
        return str(uuid.UUID(str(record_id)))
    except ValueError:
        return str(uuid.uuid5(POINT_ID_NAMESPACE, str(record_id)))


class QdrantIndex(IVectorIndex):
    """Adapter exposing a Qdrant collection as a vector index."""

    index_type = "qdrant"

    def __init__(self, client: AsyncQdrantClient, collection_name: Optional[str] = None):
        if client is None:
            raise ValidationError("Qdrant client is not connected.")
        self.client = client
        self.collection_name = collection_name or settings.QDRANT_COLLECTION_NAME

    async def ensure_collection(self, vector_size: Optional[int] = None,
                                distance: Distance = Distance.COSINE) -> bool:
        """Create the collection if it does not exist. Returns True when it was created."""
        if await self.client.collection_exists(self.collection_name):
            logger.info(f"Qdrant collection '{self.collection_name}' already exists.")
            return False

        logger.info(f"Qdrant collection '{self.collection_name}' not found. Creating it...")
        await self.client.create_collection(
            collection_name=self.collection_name,
            vectors_config=VectorParams(size=vector_size or settings.QDRANT_VECTOR_SIZE, distance=distance)
        )
        logger.info(f"Successfully created Qdrant collection: {self.collection_name}")
        return True

    async def upsert(self, vectors: Sequence[VectorRecord]) -> bool:
        points = [
            PointStruct(id=to_point_id(record["id"]), vector=list(record["vector"]),
                        payload=dict(record.get("metadata") or {}))
            for record in vectors
        ]
        if not points:
            return True

        operation_info = await self.client.upsert(
            collection_name=self.collection_name,
            points=points,
            wait=True
        )
        if operation_info.status != UpdateStatus.COMPLETED:
            raise UpstreamFailure(f"Qdrant upsert of {len(points)} points did not complete",
                                  service=self.index_type, status=str(operation_info.status))
        return True

    def _to_filter(self, filter: Any) -> Optional[Filter]:
        if filter is None or isinstance(filter, Filter):
            return filter
        if isinstance(filter, Mapping):
            logger.info(f"Applying filters to vector search: {filter}")
            return Filter(**filter)
        raise ValidationError(f"Unsupported Qdrant filter type: {type(filter).__name__}")

    async def query(self, vector: List[float], top_k: int, include_metadata: bool = True,
                    include_vectors: bool = False, filter: Optional[Any] = None) -> List[QueryHit]:
        response = await self.client.query_points(
            collection_name=self.collection_name,
            query=list(vector),
            limit=top_k,
            query_filter=self._to_filter(filter),
            with_payload=include_metadata,
            with_vectors=include_vectors,
        )
        return [
            QueryHit(
                id=str(point.id),
                score=point.score,
                metadata=point.payload if include_metadata else None,
                vector=point.vector if include_vectors else None,
            )
            for point in response.points
        ]

    async def delete(self, ids: Union[str, Sequence[str]]) -> bool:
        id_list = [ids] if isinstance(ids, str) else list(ids)
        await self.client.delete(
            collection_name=self.collection_name,
            points_selector=PointIdsList(points=[to_point_id(i) for i in id_list]),
            wait=True
        )
        return True

    async def reset(self) -> bool:
        # An empty filter matches every point
        await self.client.delete(
            collection_name=self.collection_name,
            points_selector=FilterSelector(filter=Filter()),
            wait=True
        )
        return True

    async def get_collection_stats(self) -> Dict[str, Any]:
        collection_info = await self.client.get_collection(self.collection_name)
        return {
            'total_vectors': collection_info.points_count,
            'collection_name': self.collection_name,
            'vector_size': settings.QDRANT_VECTOR_SIZE
        }
