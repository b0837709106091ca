"""Registry of the adapters loaded into a bot."""

from typing import Any

from ponder.adapters.base import (
    Adapter,
    AdapterKind,
    MessageAdapter,
    NLUAdapter,
    StorageAdapter,
)
from ponder.exceptions import AdapterError
from ponder.observability.logging import get_logger

logger = get_logger(__name__)

KINDS: dict[AdapterKind, type[Adapter]] = {
    "message": MessageAdapter,
    "nlu": NLUAdapter,
    "storage": StorageAdapter,
}


class AdapterRegistry:
    """Holds at most one adapter of each kind.

    Adapters are checked against their interface when loaded, so stages
    only need to check whether a slot is filled.
    """

    def __init__(self) -> None:
        self.message: MessageAdapter | None = None
        self.nlu: NLUAdapter | None = None
        self.storage: StorageAdapter | None = None

    @property
    def names(self) -> dict[str, str]:
        """Name of the adapter loaded in each filled slot."""
        return {kind: adapter.name for kind, adapter in self._loaded()}

    def _loaded(self) -> list[tuple[AdapterKind, Adapter]]:
        return [(kind, a) for kind in KINDS if (a := getattr(self, kind)) is not None]

    def load(self, adapter: Any, kind: AdapterKind | None = None) -> Adapter:
        """Load an adapter into the slot for its kind.

        Raises:
            AdapterError: If the adapter does not implement the interface for
                the kind
        """
        kind = kind or getattr(adapter, "kind", None)
        if kind not in KINDS:
            raise AdapterError(f"Unknown adapter kind: {kind}", kind)
        if not isinstance(adapter, KINDS[kind]):
            raise AdapterError(
                f"{type(adapter).__name__} is not a {KINDS[kind].__name__}", kind
            )
        if getattr(self, kind) is not None:
            logger.warning("adapter_replaced", kind=kind, name=adapter.name)
        setattr(self, kind, adapter)
        logger.info("adapter_loaded", kind=kind, name=adapter.name)
        return adapter

    def unload(self, kind: AdapterKind) -> None:
        """Empty the slot for a kind."""
        if kind not in KINDS:
            raise AdapterError(f"Unknown adapter kind: {kind}", kind)
        setattr(self, kind, None)

    def unload_all(self) -> None:
        for kind in KINDS:
            setattr(self, kind, None)

    async def start_all(self) -> None:
        """Start every loaded adapter, storage first."""
        for kind in ("storage", "nlu", "message"):
            adapter = getattr(self, kind)
            if adapter is not None:
                logger.debug("adapter_starting", kind=kind, name=adapter.name)
                await adapter.start()

    async def shutdown_all(self) -> None:
        """Shut down every loaded adapter, message first."""
        for kind in ("message", "nlu", "storage"):
            adapter = getattr(self, kind)
            if adapter is not None:
                logger.debug("adapter_shutdown", kind=kind, name=adapter.name)
                await adapter.shutdown()
