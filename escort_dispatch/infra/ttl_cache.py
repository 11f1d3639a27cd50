# escort_dispatch/infra/ttl_cache.py
from __future__ import annotations

import time
from typing import Any, Callable

from escort_dispatch.infra.logging_config import get_logger

logger = get_logger(__name__)


class TTLCache:
    """
    Short-lived key/value cache for collection snapshots.

    One instance belongs to one invocation: the engine builds a fresh cache
    per call, so nothing here outlives the trigger that created it.
    Entries are valid while ``now - inserted_at < ttl``; expired entries
    read as absent and are dropped on access.

    Not thread-safe. Unbounded; there is no eviction besides expiry.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, inserted_at = entry
        if self._clock() - inserted_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self, key: str | None = None) -> None:
        """Clear one entry, or the whole cache when no key is given."""
        if key is None:
            self._entries.clear()
            logger.debug("Cache cleared")
        else:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
