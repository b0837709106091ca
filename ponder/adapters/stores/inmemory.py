"""In-memory implementation of StorageAdapter."""

import copy
from typing import Any

from ponder.adapters.base import StorageAdapter
from ponder.utils import value_at_path


def matches(record: dict[str, Any], params: dict[str, Any]) -> bool:
    """Whether a record has every param value at its dot path."""
    return all(value_at_path(record, path) == value for path, value in params.items())


class InMemoryStorageAdapter(StorageAdapter):
    """In-memory implementation of StorageAdapter for testing and development.

    Uses simple dict storage with linear scan for queries. Records are
    copied in and out so callers cannot change what is stored.
    Not suitable for production use.
    """

    name = "inmemory"

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._memory: dict[str, Any] | None = None
        self._collections: dict[str, list[dict[str, Any]]] = {}

    async def save_memory(self, data: dict[str, Any]) -> None:
        self._memory = copy.deepcopy(data)

    async def load_memory(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._memory)

    async def keep(self, collection: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, []).append(copy.deepcopy(data))

    async def find(self, collection: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        return [
            copy.deepcopy(record)
            for record in self._collections.get(collection, [])
            if matches(record, params)
        ]

    async def find_one(self, collection: str, params: dict[str, Any]) -> dict[str, Any] | None:
        for record in self._collections.get(collection, []):
            if matches(record, params):
                return copy.deepcopy(record)
        return None

    async def lose(self, collection: str, params: dict[str, Any]) -> None:
        records = self._collections.get(collection, [])
        self._collections[collection] = [r for r in records if not matches(r, params)]
