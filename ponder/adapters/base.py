"""Abstract interfaces for the collaborators a bot connects to."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Literal

from ponder.models.envelope import Envelope
from ponder.models.message import TextMessage
from ponder.nlu import NLUResultsRaw

AdapterKind = Literal["message", "nlu", "storage"]


class Adapter(ABC):
    """Base for all adapters, started and shut down with the bot."""

    kind: ClassVar[AdapterKind]
    name: str = "adapter"

    async def start(self) -> None:
        """Connect to the service, if needed."""

    async def shutdown(self) -> None:
        """Disconnect from the service, if needed."""


class MessageAdapter(Adapter):
    """Sends envelopes to a chat platform."""

    kind: ClassVar[AdapterKind] = "message"

    @abstractmethod
    async def dispatch(self, envelope: Envelope) -> Any:
        """Deliver an envelope using its method."""
        pass


class NLUAdapter(Adapter):
    """Adds language understanding to text messages."""

    kind: ClassVar[AdapterKind] = "nlu"

    @abstractmethod
    async def process(self, message: TextMessage) -> NLUResultsRaw | None:
        """Get raw NLU results for a message, keyed by result kind."""
        pass


class StorageAdapter(Adapter):
    """Persists bot memory and collections of records."""

    kind: ClassVar[AdapterKind] = "storage"

    @abstractmethod
    async def save_memory(self, data: dict[str, Any]) -> None:
        """Replace the stored memory with data."""
        pass

    @abstractmethod
    async def load_memory(self) -> dict[str, Any] | None:
        """Get the stored memory, or None if nothing saved."""
        pass

    @abstractmethod
    async def keep(self, collection: str, data: dict[str, Any]) -> None:
        """Add a record to a collection."""
        pass

    @abstractmethod
    async def find(self, collection: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Get records with values equal to params, keyed by dot path."""
        pass

    @abstractmethod
    async def find_one(self, collection: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """Get the first record matching params."""
        pass

    @abstractmethod
    async def lose(self, collection: str, params: dict[str, Any]) -> None:
        """Remove records matching params."""
        pass
