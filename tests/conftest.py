"""Shared test fixtures for the Ponder test suite."""

import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest

from ponder.adapters.base import MessageAdapter, NLUAdapter
from ponder.adapters.stores.inmemory import InMemoryStorageAdapter
from ponder.bot import Bot
from ponder.config.settings import Settings
from ponder.models import Envelope, Room, TextMessage, User
from ponder.nlu import NLUResultsRaw
from ponder.state import State


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create a temporary config directory for testing."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_toml_files(test_config_dir: Path) -> Callable[[dict[str, str]], None]:
    """Factory fixture to create TOML files in the test config directory.

    Usage:
        def test_something(mock_toml_files):
            mock_toml_files({
                "default.toml": "name = 'test'",
                "development.toml": "nlu_min_length = 0",
            })
    """

    def _create_toml_files(files: dict[str, str]) -> None:
        for filename, content in files.items():
            toml_file = test_config_dir / filename
            toml_file.write_text(content)

    return _create_toml_files


class EnvOverrideContext:
    """Context manager for temporarily setting environment variables."""

    def __init__(self, overrides: dict[str, str]) -> None:
        self.overrides = overrides
        self.original_env: dict[str, str | None] = {}

    def __enter__(self) -> None:
        for key, value in self.overrides.items():
            self.original_env[key] = os.environ.get(key)
            os.environ[key] = value

    def __exit__(self, *args: Any) -> None:
        for key in self.overrides:
            if self.original_env[key] is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = self.original_env[key]


@pytest.fixture
def env_override() -> Generator[Callable[[dict[str, str]], EnvOverrideContext], None, None]:
    """Context manager for temporarily setting environment variables.

    Usage:
        def test_something(env_override):
            with env_override({"PONDER_NAME": "robo"}):
                # test code here
    """

    def _env_override(overrides: dict[str, str]) -> EnvOverrideContext:
        return EnvOverrideContext(overrides)

    yield _env_override


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None, None, None]:
    """Clear cached settings and TOML values before and after each test.

    This ensures test isolation for configuration tests.
    """
    from ponder.bot import get_bot
    from ponder.config import get_settings
    from ponder.config.settings import set_toml_config

    get_settings.cache_clear()
    get_bot.cache_clear()
    set_toml_config({})
    yield
    get_settings.cache_clear()
    get_bot.cache_clear()
    set_toml_config({})


class RecordingMessageAdapter(MessageAdapter):
    """Message adapter keeping dispatched envelopes for assertions."""

    name = "recording"

    def __init__(self) -> None:
        self.dispatched: list[Envelope] = []

    async def dispatch(self, envelope: Envelope) -> None:
        self.dispatched.append(envelope)


class StaticNLUAdapter(NLUAdapter):
    """NLU adapter returning the same results for every message."""

    name = "static"

    def __init__(self, results: NLUResultsRaw | None = None) -> None:
        self.results = results
        self.processed: list[TextMessage] = []

    async def process(self, message: TextMessage) -> NLUResultsRaw | None:
        self.processed.append(message)
        return self.results


@pytest.fixture
def settings() -> Settings:
    """Settings with a known bot name and no NLU length limit."""
    return Settings(name="bot", alias="b", nlu_min_length=0, dialogue_timeout=0)


@pytest.fixture
def bot(settings: Settings) -> Bot:
    """A bot with no adapters loaded."""
    return Bot(settings)


@pytest.fixture
def message_adapter(bot: Bot) -> RecordingMessageAdapter:
    """A recording message adapter loaded into the bot."""
    adapter = RecordingMessageAdapter()
    bot.adapters.load(adapter)
    return adapter


@pytest.fixture
def storage(bot: Bot) -> InMemoryStorageAdapter:
    """An in-memory storage adapter loaded into the bot."""
    adapter = InMemoryStorageAdapter()
    bot.adapters.load(adapter)
    return adapter


@pytest.fixture
def user() -> User:
    return User(id="u1", name="Alice")


@pytest.fixture
def room() -> Room:
    return Room(id="r1", name="general")


@pytest.fixture
def make_message(user: User, room: Room) -> Callable[..., TextMessage]:
    """Factory for text messages from the test user in the test room."""

    def _make(text: str, **options: Any) -> TextMessage:
        options.setdefault("user", user)
        options.setdefault("room", room)
        return TextMessage(text=text, **options)

    return _make


@pytest.fixture
def make_state(bot: Bot, make_message: Callable[..., TextMessage]) -> Callable[..., State]:
    """Factory for states of a text message processed by the test bot."""

    def _make(text: str = "hello", **options: Any) -> State:
        return State(bot=bot, message=make_message(text, **options))

    return _make


@pytest.fixture
def load_nlu(bot: Bot) -> Callable[[NLUResultsRaw | None], StaticNLUAdapter]:
    """Factory loading an NLU adapter with fixed results into the bot."""

    def _load(results: NLUResultsRaw | None = None) -> StaticNLUAdapter:
        adapter = StaticNLUAdapter(results)
        bot.adapters.load(adapter)
        return adapter

    return _load
