"""Root settings model for Ponder configuration."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from ponder.config.models.observability import LoggingConfig
from ponder.config.models.storage import StorageConfig
from ponder.exceptions import ConfigurationError

# Module-level variable to store TOML config for settings source
_toml_config: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    """Set the TOML configuration to be used by Settings."""
    global _toml_config
    _toml_config = config


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that reads from TOML configuration."""

    def get_field_value(
        self, field: Any, field_name: str  # noqa: ARG002
    ) -> tuple[Any, str, bool]:
        """Get field value from TOML config."""
        value = _toml_config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return the TOML config values."""
        return _toml_config.copy()


class Settings(BaseSettings):
    """Root configuration object for a bot.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml (base configuration)
    3. config/{PONDER_ENV}.toml (environment overrides)
    4. PONDER_* environment variables (runtime overrides)

    Besides attribute access, settings implement the synchronous
    ``get(key)``/``set(key, value)`` source used by branches, thoughts and
    dialogues. Keys may use the hyphenated form, e.g. ``"nlu-min-length"``,
    or a dotted path into nested sections, e.g. ``"storage.auto_save"``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PONDER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    app_name: str = Field(default="ponder", description="Application name for logging")
    name: str = Field(
        default="bot",
        description="Name of the bot in chat, prefixing input with it triggers direct branches",
    )
    alias: str | None = Field(default=None, description="Alternate name for the bot")
    nlu_min_length: int = Field(
        default=10,
        ge=0,
        description="Minimum text length for NLU to process a message (0 disables)",
    )
    dialogue_timeout: float = Field(
        default=0,
        ge=0,
        description="Default seconds to wait for input in dialogue (0 = never expire)",
    )
    dialogue_timeout_text: str | None = Field(
        default="Sorry, the time limit for a response was reached. Please start again.",
        description="What to send when a dialogue times out (None sends nothing)",
    )
    dialogue_timeout_method: str = Field(
        default="send",
        description="Envelope method used to send the timeout text",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Storage adapter configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include TOML config.

        Priority order (highest to lowest):
        1. init_settings (constructor arguments)
        2. env_settings (PONDER_* environment variables)
        3. toml_settings (config/*.toml files)
        4. (defaults from model)
        """
        return (
            init_settings,
            env_settings,
            TomlConfigSettingsSource(settings_cls),
        )

    def _resolve(self, key: str) -> tuple[Any, str]:
        """Find the object owning a config key and the attribute name."""
        parts = key.replace("-", "_").split(".")
        owner: Any = self
        for part in parts[:-1]:
            owner = getattr(owner, part, None)
            if owner is None:
                raise ConfigurationError(f"Unknown configuration key: {key}")
        attr = parts[-1]
        if attr not in type(owner).model_fields:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        return owner, attr

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key, or default if unknown."""
        try:
            owner, attr = self._resolve(key)
        except ConfigurationError:
            return default
        return getattr(owner, attr)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by key (validated on assignment)."""
        owner, attr = self._resolve(key)
        setattr(owner, attr, value)
