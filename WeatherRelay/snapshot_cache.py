"""Time-bounded cache of weather snapshots keyed by location."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional
from weather_data import WeatherSnapshot

DEFAULT_TTL_SECONDS = 900  # 15 minutes


@dataclass(frozen=True)
class CacheEntry:
    snapshot: WeatherSnapshot
    fetched_at: float


class SnapshotCache:
    """
    In-memory snapshot store with lazy expiry.

    Entries older than the TTL are reported as absent but left in place;
    the next successful fetch for that key overwrites them.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: How long a snapshot is served before it must be re-fetched
            clock: Time source returning seconds; injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[WeatherSnapshot]:
        """Return the snapshot for key if it is still within the TTL."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        cache_age = self._clock() - entry.fetched_at
        if cache_age > self.ttl_seconds:
            logging.debug(f"Cache stale for '{key}' (age: {cache_age:.1f}s > TTL: {self.ttl_seconds}s)")
            return None
        logging.debug(f"Cache hit for '{key}' (age: {cache_age:.1f}s)")
        return entry.snapshot

    def put(self, key: str, snapshot: WeatherSnapshot) -> None:
        self._entries[key] = CacheEntry(snapshot=snapshot, fetched_at=self._clock())

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry regardless of age."""
        return self._entries.get(key)

    def __len__(self) -> int:
        return len(self._entries)
