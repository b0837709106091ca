"""Storage adapter implementations."""

from ponder.adapters.stores.inmemory import InMemoryStorageAdapter
from ponder.adapters.stores.redis import RedisStorageAdapter

__all__ = ["InMemoryStorageAdapter", "RedisStorageAdapter"]
