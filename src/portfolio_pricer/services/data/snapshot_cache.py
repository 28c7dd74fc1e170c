"""
Time-boxed cache of full provider snapshots.

One slot per provider. An entry is readable while its age is below the TTL;
after that get() reports a miss and the caller downloads the whole dataset
again and overwrites the slot. There is no locking and no single-flight:
two lookups racing on an empty slot both refetch, and the later put() wins.
"""

import time
from typing import Any, Callable, Optional

from cachetools import TTLCache
from loguru import logger


DEFAULT_TTL_SECONDS = 60 * 60


class SnapshotCache:
    """Per-provider snapshot cache with a fixed TTL."""

    def __init__(
        self,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_providers: int = 32,
        timer: Callable[[], float] = time.monotonic
    ):
        """
        Initialize cache.

        Args:
            ttl: Entry lifetime in seconds
            max_providers: Number of provider slots kept
            timer: Clock used to age entries (injectable for tests)
        """
        self.ttl = ttl
        self._timer = timer
        self._entries: TTLCache = TTLCache(maxsize=max_providers, ttl=ttl, timer=timer)
        self._fetched_at = {}

    def get(self, provider: str) -> Optional[Any]:
        """Return the provider's snapshot, or None if absent or expired."""
        snapshot = self._entries.get(provider)
        if snapshot is None:
            logger.debug(f"Snapshot cache miss for {provider}")
        return snapshot

    def put(self, provider: str, snapshot: Any) -> None:
        """Replace the provider's snapshot wholesale."""
        self._entries[provider] = snapshot
        self._fetched_at[provider] = self._timer()

    def age(self, provider: str) -> Optional[float]:
        """Seconds since the provider's snapshot was stored, if it is still valid."""
        if provider not in self._entries:
            return None
        return self._timer() - self._fetched_at[provider]

    def clear(self) -> None:
        self._entries.clear()
        self._fetched_at.clear()
