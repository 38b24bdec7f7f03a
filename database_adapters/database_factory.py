"""
Database factory for creating and managing all database adapters.
"""

import logging
from typing import Any, Dict, Optional
import redis.asyncio as redis
from qdrant_client import AsyncQdrantClient

from config.settings import settings
from .message.postgres_history import PostgresChatMessageHistory
from .neo4j_adapter import Neo4jGraphAdapter
from .storage.redis_byte_store import RedisByteStore
from .vector.batched_store import BatchedVectorStore
from .vector.qdrant_adapter import QdrantIndex
from .vector.vectara_adapter import VectaraStore

logger = logging.getLogger(__name__)

class DatabaseFactory:
    """Factory for creating all database adapter instances."""

    _adapter_map = {
        "graph": {
            "neo4j": Neo4jGraphAdapter,
        },
        "vector": {
            "batched": BatchedVectorStore,
            "vectara": VectaraStore,
        },
        "index": {
            "qdrant": QdrantIndex,
        },
        "storage": {
            "redis": RedisByteStore,
        },
        "message": {
            "postgres": PostgresChatMessageHistory,
        },
    }

    @staticmethod
    def create_adapter(adapter_type: str, database_name: str, *args, **kwargs) -> Optional[Any]:
        """Creates a database adapter based on its type and name."""
        adapter_class = DatabaseFactory._adapter_map.get(adapter_type, {}).get(database_name.lower())
        if not adapter_class:
            logger.error(f"Unsupported adapter: {adapter_type}/{database_name}")
            return None
        adapter = adapter_class(*args, **kwargs)
        logger.info(f"Created {database_name} {adapter_type} adapter")
        return adapter

class DatabaseManager:
    """Owns long-lived adapters and client handles, and closes them on shutdown."""
    def __init__(self):
        self.adapters: Dict[str, Any] = {}
        self.active_adapter: Optional[str] = None

    def register_adapter(self, name: str, adapter: Any) -> bool:
        self.adapters[name] = adapter
        logger.info(f"Registered database adapter: {name}")
        return True

    def set_active_adapter(self, name: str) -> bool:
        if name not in self.adapters:
            raise ValueError(f"Adapter {name} not registered")
        self.active_adapter = name
        logger.info(f"Set active adapter to: {name}")
        return True

    def get_adapter(self, name: Optional[str] = None) -> Optional[Any]:
        return self.adapters.get(name or self.active_adapter)

    async def close_all(self):
        """Close every registered adapter, continuing past failures."""
        for name, adapter in list(self.adapters.items()):
            for closer in ("close", "aclose", "end"):
                method = getattr(adapter, closer, None)
                if method is None:
                    continue
                try:
                    await method()
                except Exception as e:
                    logger.error(f"Failed to close adapter {name}: {e}")
                break
        self.adapters.clear()
        self.active_adapter = None

def create_qdrant_client(url: Optional[str] = None, api_key: Optional[str] = None):
    """Build the shared async Qdrant client; in-memory when no URL is configured."""
    url = url or settings.QDRANT_URL
    if url:
        logger.info(f"Using remote Qdrant at {url}")
        return AsyncQdrantClient(url=url, api_key=api_key or settings.QDRANT_API_KEY, timeout=settings.QDRANT_TIMEOUT)
    logger.info("QDRANT_URL not set. Using in-memory Qdrant instance.")
    return AsyncQdrantClient(location=":memory:")

def create_redis_client(**overrides):
    """Build the shared async Redis client from settings. Responses stay as bytes."""
    params = {
        "host": settings.REDIS_HOST,
        "port": settings.REDIS_PORT,
        "db": settings.REDIS_DB,
        "password": settings.REDIS_PASSWORD,
        "decode_responses": False,
    }
    params.update(overrides)
    logger.info(f"Redis client configured for {params['host']}:{params['port']}")
    return redis.Redis(**params)
