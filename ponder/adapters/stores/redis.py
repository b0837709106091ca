"""Redis implementation of StorageAdapter.

Key format:
    {prefix}:memory            JSON of the saved memory
    {prefix}:{collection}      list of JSON records
"""

import json
from typing import Any

from redis.asyncio import Redis

from ponder.adapters.base import StorageAdapter
from ponder.adapters.stores.inmemory import matches
from ponder.observability.logging import get_logger

logger = get_logger(__name__)


class RedisStorageAdapter(StorageAdapter):
    """Redis-backed storage, queries scan the collection list."""

    name = "redis"

    def __init__(self, redis: Redis, key_prefix: str = "ponder"):
        """Initialize Redis storage.

        Args:
            redis: Redis client instance
            key_prefix: Prefix for Redis keys
        """
        self._redis = redis
        self._key_prefix = key_prefix

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "ponder") -> "RedisStorageAdapter":
        """Create with a client connected to a Redis URL."""
        return cls(Redis.from_url(url), key_prefix)

    def _make_key(self, name: str) -> str:
        return f"{self._key_prefix}:{name}"

    async def start(self) -> None:
        await self._redis.ping()
        logger.info("redis_storage_connected", key_prefix=self._key_prefix)

    async def shutdown(self) -> None:
        await self._redis.aclose()

    async def save_memory(self, data: dict[str, Any]) -> None:
        await self._redis.set(self._make_key("memory"), json.dumps(data, default=str))

    async def load_memory(self) -> dict[str, Any] | None:
        value = await self._redis.get(self._make_key("memory"))
        if value is None:
            return None
        return json.loads(value)

    async def keep(self, collection: str, data: dict[str, Any]) -> None:
        await self._redis.rpush(self._make_key(collection), json.dumps(data, default=str))

    async def _records(self, collection: str) -> list[tuple[Any, dict[str, Any]]]:
        values = await self._redis.lrange(self._make_key(collection), 0, -1)
        return [(value, json.loads(value)) for value in values]

    async def find(self, collection: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return [record for _, record in await self._records(collection) if matches(record, params)]

    async def find_one(self, collection: str, params: dict[str, Any]) -> dict[str, Any] | None:
        for _, record in await self._records(collection):
            if matches(record, params):
                return record
        return None

    async def lose(self, collection: str, params: dict[str, Any]) -> None:
        key = self._make_key(collection)
        for raw, record in await self._records(collection):
            if matches(record, params):
                await self._redis.lrem(key, 1, raw)
        logger.debug("redis_records_removed", collection=collection)
