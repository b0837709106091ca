"""Small helpers shared across components."""

import inspect
import itertools
from collections import defaultdict
from collections.abc import Iterator, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

_counters: defaultdict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


def random_id() -> str:
    """Return a random hex identifier."""
    return uuid4().hex


def counter(prefix: str = "uid") -> str:
    """Return the next id for a prefix, e.g. ``branch_1``, ``branch_2``."""
    return f"{prefix}_{next(_counters[prefix])}"


async def resolve(value: Any) -> Any:
    """Await value if it is awaitable, so hooks may be sync or async."""
    if inspect.isawaitable(value):
        return await value
    return value


MISSING: Any = object()


def value_at_path(data: Any, path: str) -> Any:
    """Value in nested data at a dot separated path, or MISSING."""
    value = data
    for key in path.split("."):
        if isinstance(value, Mapping) and key in value:
            value = value[key]
        elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return MISSING
    return value
