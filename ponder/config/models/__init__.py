"""Configuration model exports.

    from ponder.config.models import LoggingConfig, StorageConfig
"""

from ponder.config.models.observability import LogFormat, LoggingConfig, LogLevel
from ponder.config.models.storage import RedisStorageConfig, StorageConfig

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "RedisStorageConfig",
    "StorageConfig",
]
