"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["none", "inmemory", "redis"]


class RedisStorageConfig(BaseModel):
    """Redis storage adapter configuration."""

    url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL",
    )
    key_prefix: str = Field(
        default="ponder",
        description="Prefix for every key written by the adapter",
    )


class StorageConfig(BaseModel):
    """Storage adapter selection and auto-save behaviour."""

    backend: BackendType = Field(
        default="none",
        description="Storage adapter loaded by the bot on start",
    )
    redis: RedisStorageConfig = Field(
        default_factory=RedisStorageConfig,
        description="Redis adapter settings",
    )
    auto_save: bool = Field(
        default=True,
        description="Periodically save memory through the storage adapter",
    )
    auto_save_interval: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between memory saves",
    )
