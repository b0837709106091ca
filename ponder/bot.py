"""The bot, composing every component of the engine.

Example usage:

    from ponder.bot import Bot
    from ponder.models import TextMessage, User

    bot = Bot()
    bot.branches.text({"contains": "hello"}, lambda state: state.respond("hi!"))
    bot.adapters.load(MyChatAdapter())
    await bot.start()

    await bot.receive(TextMessage(user=User(id="u1"), text="hello there"))
"""

from functools import lru_cache
from typing import Any

from ponder.adapters.registry import AdapterRegistry
from ponder.adapters.stores.inmemory import InMemoryStorageAdapter
from ponder.adapters.stores.redis import RedisStorageAdapter
from ponder.branches.controller import BranchController
from ponder.config import get_settings
from ponder.config.settings import Settings
from ponder.dialogue import DialogueController
from ponder.memory import Memory, StorageController
from ponder.middleware import MiddlewareController
from ponder.models.envelope import Envelope
from ponder.models.message import Message, ServerMessage
from ponder.observability.logging import get_logger, setup_logging
from ponder.state import State
from ponder.thoughts.controller import ThoughtController

logger = get_logger(__name__)


class Bot:
    """Owns the middleware, branches, dialogues, adapters and memory.

    Every component is constructed here and passed to those depending on
    it, so separate bots in one process share nothing.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.middlewares = MiddlewareController()
        self.middlewares.load_all()
        self.branches = BranchController(settings=self.settings)
        self.dialogues = DialogueController(self.settings)
        self.adapters = AdapterRegistry()
        self.store = StorageController(self.adapters)
        self.memory = Memory(self.adapters, self.settings)
        self.thoughts = ThoughtController(self)
        self.started = False

    def __repr__(self) -> str:
        return f"Bot(name={self.settings.name!r}, adapters={self.adapters.names})"

    async def receive(self, message: Message, branches: BranchController | None = None) -> State:
        return await self.thoughts.receive(message, branches)

    async def serve(
        self,
        message: ServerMessage,
        context: dict[str, Any] | None = None,
        branches: BranchController | None = None,
    ) -> State:
        return await self.thoughts.serve(message, context, branches)

    async def dispatch(self, envelope: Envelope) -> State:
        return await self.thoughts.dispatch(envelope)

    def envelope(self, **options: Any) -> Envelope:
        """New envelope for an unprompted dispatch."""
        return Envelope(**options)

    def load_storage(self) -> None:
        """Load the storage adapter configured by settings, if none loaded."""
        if self.adapters.storage is not None:
            return
        config = self.settings.storage
        if config.backend == "inmemory":
            self.adapters.load(InMemoryStorageAdapter())
        elif config.backend == "redis":
            self.adapters.load(
                RedisStorageAdapter.from_url(config.redis.url, config.redis.key_prefix)
            )

    async def start(self) -> None:
        """Configure logging, start adapters and load memory."""
        log = self.settings.logging
        setup_logging(level=log.level, format=log.format, redact_pii=log.redact_pii)
        self.load_storage()
        await self.adapters.start_all()
        await self.memory.start()
        self.started = True
        logger.info("bot_started", name=self.settings.name, adapters=self.adapters.names)

    async def shutdown(self) -> None:
        """Save memory, stop dialogues and shut down adapters."""
        await self.memory.shutdown()
        self.dialogues.reset()
        await self.adapters.shutdown_all()
        self.started = False
        logger.info("bot_shutdown", name=self.settings.name)

    def reset(self) -> None:
        """Remove all branches, middleware, dialogues, adapters and memory."""
        self.branches.reset()
        self.dialogues.reset()
        self.middlewares.unload_all()
        self.middlewares.load_all()
        self.adapters.unload_all()
        self.memory.clear()
        logger.debug("bot_reset")


@lru_cache(maxsize=1)
def get_bot() -> Bot:
    """Process-wide default bot, for the outermost entry point only.

    Call `get_bot.cache_clear()` to discard it.
    """
    return Bot()
