"""Tests for the adapter registry."""

from unittest.mock import AsyncMock

import pytest

from ponder.adapters.base import MessageAdapter, NLUAdapter
from ponder.adapters.registry import AdapterRegistry
from ponder.adapters.stores.inmemory import InMemoryStorageAdapter
from ponder.exceptions import AdapterError
from ponder.models import Envelope, TextMessage
from ponder.nlu import NLUResultsRaw


class NullMessageAdapter(MessageAdapter):
    """Message adapter delivering nowhere, for slot checks."""

    name = "null-message"

    async def dispatch(self, envelope: Envelope) -> None:
        return None


class NullNLUAdapter(NLUAdapter):
    """NLU adapter understanding nothing, for slot checks."""

    name = "null-nlu"

    async def process(self, message: TextMessage) -> NLUResultsRaw | None:
        return None


class TestAdapterRegistryLoad:
    """Tests for loading adapters into slots."""

    def test_load_by_kind(self) -> None:
        """Adapters load into the slot for their kind."""
        registry = AdapterRegistry()
        message = registry.load(NullMessageAdapter())
        nlu = registry.load(NullNLUAdapter())
        storage = registry.load(InMemoryStorageAdapter())

        assert registry.message is message
        assert registry.nlu is nlu
        assert registry.storage is storage
        assert registry.names == {"message": "null-message", "nlu": "null-nlu", "storage": "inmemory"}

    def test_wrong_interface_rejected(self) -> None:
        """Adapters must implement the interface of the slot."""
        with pytest.raises(AdapterError) as exc_info:
            AdapterRegistry().load(NullNLUAdapter(), "message")
        assert exc_info.value.kind == "message"

    def test_unknown_kind_rejected(self) -> None:
        """Objects without a known kind are rejected."""
        with pytest.raises(AdapterError):
            AdapterRegistry().load(object())

    def test_replace(self) -> None:
        """Loading another adapter of a kind replaces the first."""
        registry = AdapterRegistry()
        registry.load(NullMessageAdapter())
        second = registry.load(NullMessageAdapter())
        assert registry.message is second

    def test_unload(self) -> None:
        """Unloading empties slots."""
        registry = AdapterRegistry()
        registry.load(NullMessageAdapter())
        registry.load(InMemoryStorageAdapter())
        registry.unload("message")
        assert registry.message is None
        registry.unload_all()
        assert registry.names == {}

    def test_unload_unknown_kind(self) -> None:
        """Unloading an unknown kind is an error."""
        with pytest.raises(AdapterError):
            AdapterRegistry().unload("email")  # type: ignore[arg-type]


class TestAdapterRegistryLifecycle:
    """Tests for starting and shutting down adapters."""

    @pytest.mark.asyncio
    async def test_start_and_shutdown_order(self) -> None:
        """Storage starts first and shuts down last."""
        calls: list[str] = []
        registry = AdapterRegistry()
        message = registry.load(NullMessageAdapter())
        storage = registry.load(InMemoryStorageAdapter())
        message.start = AsyncMock(side_effect=lambda: calls.append("start message"))  # type: ignore[method-assign]
        storage.start = AsyncMock(side_effect=lambda: calls.append("start storage"))  # type: ignore[method-assign]
        message.shutdown = AsyncMock(side_effect=lambda: calls.append("stop message"))  # type: ignore[method-assign]
        storage.shutdown = AsyncMock(side_effect=lambda: calls.append("stop storage"))  # type: ignore[method-assign]

        await registry.start_all()
        await registry.shutdown_all()

        assert calls == ["start storage", "start message", "stop message", "stop storage"]
