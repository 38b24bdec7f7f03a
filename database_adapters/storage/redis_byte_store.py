"""
Redis key-value byte store.
"""

import logging
from typing import AsyncIterator, List, Optional, Sequence, Tuple
import redis.asyncio as redis
from redis.exceptions import RedisError

from config.settings import settings
from core.errors import UpstreamFailure, ValidationError
from interfaces.ibyte_store import IByteStore

logger = logging.getLogger(__name__)

NAMESPACE_DELIMITER = "/"


class RedisByteStore(IByteStore):
    """
    Byte store on a Redis database.

    Keys are optionally prefixed with ``namespace/`` and optionally expire
    after ``ttl`` seconds.

    Example:
        store = RedisByteStore(client=redis.Redis())
        await store.mset([("message:id:0", b"..."), ("message:id:1", b"...")])
        values = await store.mget(["message:id:0", "message:id:1"])
        keys = [key async for key in store.yield_keys("message:id:")]
        await store.mdelete(keys)
    """

    def __init__(self, client: redis.Redis, ttl: Optional[int] = None, namespace: Optional[str] = None,
                 yield_keys_scan_batch_size: Optional[int] = None):
        if client is None:
            raise ValidationError("RedisByteStore requires a Redis client")
        self.client = client
        self.ttl = ttl if ttl is not None else settings.CACHE_TTL
        self.namespace = namespace if namespace is not None else settings.REDIS_NAMESPACE
        self.yield_keys_scan_batch_size = yield_keys_scan_batch_size or settings.REDIS_SCAN_BATCH_SIZE

    def _get_prefixed_key(self, key: str) -> str:
        if self.namespace:
            return f"{self.namespace}{NAMESPACE_DELIMITER}{key}"
        return key

    def _get_deprefixed_key(self, key: str) -> str:
        if self.namespace:
            return key[len(self.namespace) + len(NAMESPACE_DELIMITER):]
        return key

    async def mget(self, keys: Sequence[str]) -> List[Optional[bytes]]:
        if not keys:
            return []
        prefixed_keys = [self._get_prefixed_key(key) for key in keys]
        try:
            values = await self.client.mget(prefixed_keys)
        except RedisError as e:
            logger.error(f"Redis MGET failed: {e}")
            raise UpstreamFailure(f"Redis MGET failed: {e}", service="redis") from e
        return list(values)

    async def mset(self, key_value_pairs: Sequence[Tuple[str, bytes]]) -> None:
        if not key_value_pairs:
            return
        try:
            async with self.client.pipeline(transaction=False) as pipeline:
                for key, value in key_value_pairs:
                    if self.ttl:
                        pipeline.set(self._get_prefixed_key(key), value, ex=self.ttl)
                    else:
                        pipeline.set(self._get_prefixed_key(key), value)
                await pipeline.execute()
        except RedisError as e:
            logger.error(f"Redis pipeline SET of {len(key_value_pairs)} keys failed: {e}")
            raise UpstreamFailure(f"Redis MSET failed: {e}", service="redis") from e

    async def mdelete(self, keys: Sequence[str]) -> None:
        if not keys:
            return
        try:
            await self.client.delete(*[self._get_prefixed_key(key) for key in keys])
        except RedisError as e:
            logger.error(f"Redis DEL failed: {e}")
            raise UpstreamFailure(f"Redis DEL failed: {e}", service="redis") from e

    async def yield_keys(self, prefix: Optional[str] = None) -> AsyncIterator[str]:
        """
        Yield keys matching prefix, scanning in batches.

        Iteration resumes from the cursor returned by each SCAN and stops when
        Redis returns cursor 0.
        """
        if prefix:
            wildcard_prefix = prefix if prefix.endswith("*") else f"{prefix}*"
            pattern = self._get_prefixed_key(wildcard_prefix)
        else:
            pattern = self._get_prefixed_key("*")

        cursor = 0
        while True:
            try:
                cursor, batch = await self.client.scan(
                    cursor=cursor, match=pattern, count=self.yield_keys_scan_batch_size
                )
            except RedisError as e:
                logger.error(f"Redis SCAN failed: {e}")
                raise UpstreamFailure(f"Redis SCAN failed: {e}", service="redis") from e
            for key in batch:
                if isinstance(key, bytes):
                    key = key.decode("utf-8")
                yield self._get_deprefixed_key(key)
            if int(cursor) == 0:
                break
