"""TOML configuration loader with deep merge support."""

import os
import tomllib
from pathlib import Path
from typing import Any


def get_config_dir() -> Path | None:
    """Get the configuration directory of the application embedding the bot.

    PONDER_CONFIG_DIR names it explicitly, otherwise 'config/' in the
    working directory is used if present. None means no TOML files, so
    only package defaults and environment variables apply.
    """
    config_dir_env = os.environ.get("PONDER_CONFIG_DIR")
    if config_dir_env:
        path = Path(config_dir_env)
        if not path.exists():
            raise FileNotFoundError(f"Config directory not found: {config_dir_env}")
        return path

    config_path = Path.cwd() / "config"
    return config_path if config_path.is_dir() else None


def get_environment() -> str:
    """Get the current environment from PONDER_ENV.

    Defaults to 'development' if not set.
    """
    return os.environ.get("PONDER_ENV", "development")


def load_toml(file_path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary.

    Args:
        file_path: Path to the TOML file

    Returns:
        Dictionary containing the TOML data

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the TOML syntax is invalid
    """
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with file_path.open("rb") as f:
        return tomllib.load(f)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence.

    Nested dictionaries are merged recursively, other values are replaced.
    Neither input is modified.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_config(config_dir: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML files.

    Loading order, both optional:
    1. default.toml
    2. {PONDER_ENV}.toml

    Args:
        config_dir: Directory to read, found with get_config_dir if omitted

    Returns:
        Merged configuration dictionary
    """
    config_dir = config_dir or get_config_dir()
    config: dict[str, Any] = {}
    if config_dir is None:
        return config

    env = get_environment()
    default_path = config_dir / "default.toml"
    if default_path.exists():
        config = load_toml(default_path)

    env_path = config_dir / f"{env}.toml"
    if env_path.exists():
        config = deep_merge(config, load_toml(env_path))

    return config
