"""Adapters connecting a bot to messaging, NLU and storage services."""

from ponder.adapters.base import (
    Adapter,
    AdapterKind,
    MessageAdapter,
    NLUAdapter,
    StorageAdapter,
)
from ponder.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterKind",
    "AdapterRegistry",
    "MessageAdapter",
    "NLUAdapter",
    "StorageAdapter",
]
