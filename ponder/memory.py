"""Bot memory and record storage through the storage adapter."""

import asyncio
import copy
from typing import Any

from pydantic import BaseModel

from ponder.adapters.registry import AdapterRegistry
from ponder.config.settings import Settings
from ponder.exceptions import AdapterError
from ponder.models.user import Room, User
from ponder.observability.logging import get_logger
from ponder.state import State

logger = get_logger(__name__)

COLLECTIONS = ("users", "rooms", "private")


def to_record(data: Any) -> dict[str, Any]:
    """Plain data for a state, model or mapping."""
    if isinstance(data, State):
        return data.to_record()
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return copy.deepcopy(dict(data))


class StorageController:
    """Keeps and finds records in collections of the storage adapter."""

    def __init__(self, adapters: AdapterRegistry) -> None:
        self.adapters = adapters

    def _storage(self, operation: str) -> Any:
        if self.adapters.storage is None:
            raise AdapterError(f"Storage {operation} called without storage adapter", "storage")
        return self.adapters.storage

    async def keep(self, collection: str, data: Any) -> None:
        """Add a record, does nothing without a storage adapter."""
        if self.adapters.storage is None:
            return
        await self.adapters.storage.keep(collection, to_record(data))

    async def find(self, collection: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return await self._storage("find").find(collection, params or {})

    async def find_one(self, collection: str, params: dict[str, Any]) -> dict[str, Any] | None:
        return await self._storage("find_one").find_one(collection, params)

    async def lose(self, collection: str, params: dict[str, Any]) -> None:
        await self._storage("lose").lose(collection, params)


class Memory:
    """Users, rooms and private data remembered between messages.

    Saved through the storage adapter on shutdown and, when enabled,
    periodically while running.
    """

    def __init__(self, adapters: AdapterRegistry, settings: Settings) -> None:
        self.adapters = adapters
        self.settings = settings
        self.users: dict[str, User] = {}
        self.rooms: dict[str, Room] = {}
        self.private: dict[str, Any] = {}
        self._auto_save_task: asyncio.Task[None] | None = None

    def _collection(self, name: str) -> dict[str, Any]:
        if name not in COLLECTIONS:
            raise KeyError(f"Unknown memory collection: {name}")
        return getattr(self, name)

    def user_by_id(self, user_id: str, user: User | None = None) -> User:
        """Remembered user, updated with any newer attributes given."""
        saved = self.users.get(user_id)
        merged: dict[str, Any] = {"id": user_id}
        if saved is not None:
            merged.update(saved.model_dump())
        if user is not None:
            merged.update(user.model_dump())
        remembered = User.model_validate(merged)
        self.users[user_id] = remembered
        return remembered

    def users_by_name(self, name: str) -> list[User]:
        """Remembered users with a name, ignoring case."""
        return [u for u in self.users.values() if u.name.lower() == name.lower()]

    def get(self, key: str, collection: str = "private") -> Any:
        return self._collection(collection).get(key)

    def set(self, key: str, value: Any, collection: str = "private") -> "Memory":
        """Remember a copy of a value."""
        self._collection(collection)[key] = copy.deepcopy(value)
        return self

    def unset(self, key: str, collection: str = "private") -> "Memory":
        self._collection(collection).pop(key, None)
        return self

    def clear(self) -> None:
        self.users = {}
        self.rooms = {}
        self.private = {}

    def to_record(self) -> dict[str, Any]:
        return {
            "users": {k: u.model_dump(mode="json") for k, u in self.users.items()},
            "rooms": {k: r.model_dump(mode="json") for k, r in self.rooms.items()},
            "private": copy.deepcopy(self.private),
        }

    async def save(self) -> None:
        """Save memory through the storage adapter, if loaded."""
        if self.adapters.storage is None:
            return
        await self.adapters.storage.save_memory(self.to_record())
        logger.debug("memory_saved", users=len(self.users), rooms=len(self.rooms))

    async def load(self) -> None:
        """Merge saved memory over what is currently remembered."""
        if self.adapters.storage is None:
            logger.warning("memory_load_without_storage")
            return
        loaded = await self.adapters.storage.load_memory() or {}
        for user_id, data in loaded.get("users", {}).items():
            self.users[user_id] = User.model_validate(data)
        for room_id, data in loaded.get("rooms", {}).items():
            self.rooms[room_id] = Room.model_validate(data)
        self.private.update(loaded.get("private", {}))
        logger.info("memory_loaded", users=len(self.users), rooms=len(self.rooms))

    async def start(self) -> None:
        """Load memory and begin saving periodically if enabled."""
        if self.adapters.storage is None:
            return
        await self.load()
        if self.settings.storage.auto_save:
            interval = self.settings.storage.auto_save_interval
            self._auto_save_task = asyncio.create_task(self._auto_save(interval))
            logger.info("memory_auto_save_enabled", interval_seconds=interval)

    async def shutdown(self) -> None:
        """Stop saving periodically and save a final time."""
        if self._auto_save_task is not None:
            self._auto_save_task.cancel()
            try:
                await self._auto_save_task
            except asyncio.CancelledError:
                pass
            self._auto_save_task = None
        await self.save()
        logger.info("memory_saving_disabled")

    async def _auto_save(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.save()
            except Exception as e:
                logger.error("memory_auto_save_failed", error=str(e))
