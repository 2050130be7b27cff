"""Keeps cached snapshots for subscribed locations fresh and publishes updates."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional
from snapshot_cache import SnapshotCache
from subscription_registry import SubscriptionRegistry
from weather_data import WeatherSnapshot
from weather_provider import WeatherProviderBase, WeatherProviderError

DEFAULT_INTERVAL_SECONDS = 300  # 5 minutes

UpdatePublisher = Callable[[str, WeatherSnapshot], object]
ErrorPublisher = Callable[[str, WeatherProviderError], object]


@dataclass(frozen=True)
class RefreshResult:
    key: str
    snapshot: Optional[WeatherSnapshot] = None
    error: Optional[WeatherProviderError] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None


class RefreshEngine:
    """
    Fetches snapshots for subscribed locations, on a timer and on demand.

    Provider calls are blocking, so each one runs in a worker thread and the
    event loop stays free for other connections while it is in flight.
    Concurrent cache misses for the same key share a single fetch, except
    fetches made with a caller-supplied credential, which always run alone.

    The provider is queried with the location as a caller first spelled it
    (e.g. "Tokyo"); the cache and registry use the normalized key.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        cache: SnapshotCache,
        registry: SubscriptionRegistry,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_retries: int = 2,
        retry_delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """
        Initialize the refresh engine.

        Args:
            provider: Weather provider to fetch snapshots from
            cache: Snapshot cache shared with the relay
            registry: Subscription registry shared with the relay
            interval_seconds: Time between periodic refreshes
            max_retries: Maximum fetch attempts on transient errors
            retry_delay_seconds: Base delay between attempts
            sleep: Coroutine used for waiting; injectable for tests
        """
        self.provider = provider
        self.cache = cache
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.max_retries = max(1, max_retries)
        self.retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

        self._inflight: Dict[str, "asyncio.Task[WeatherSnapshot]"] = {}
        self._labels: Dict[str, str] = {}
        self._on_update: Optional[UpdatePublisher] = None
        self._on_error: Optional[ErrorPublisher] = None

    def set_publishers(self, on_update: UpdatePublisher, on_error: ErrorPublisher) -> None:
        """Register where refreshed snapshots and refresh failures are sent."""
        self._on_update = on_update
        self._on_error = on_error

    async def get_or_fetch(
        self,
        key: str,
        api_key: Optional[str] = None,
        location: Optional[str] = None
    ) -> WeatherSnapshot:
        """
        Return a fresh snapshot for key, fetching it on a cache miss.

        Args:
            key: Normalized location key
            api_key: Credential for this call only; such fetches are never shared
            location: Location as the caller wrote it, used for the provider query

        Raises:
            WeatherProviderError: If the fetch fails
        """
        self._remember_label(key, location)
        snapshot = self.cache.get(key)
        if snapshot is not None:
            return snapshot

        task = self._inflight.get(key) if api_key is None else None
        if task is None:
            task = self._start_fetch(key, api_key)
        else:
            logging.debug(f"Joining in-flight fetch for '{key}'")
        return await asyncio.shield(task)

    async def refresh(self, key: str, location: Optional[str] = None) -> RefreshResult:
        """
        Fetch key bypassing the cache and publish the outcome to its subscribers.

        A failed fetch leaves any existing cache entry in place.
        """
        self._remember_label(key, location)
        try:
            snapshot = await asyncio.shield(self._start_fetch(key))
        except WeatherProviderError as e:
            entry = self.cache.peek(key)
            if entry is not None:
                logging.warning(f"Refresh of '{key}' failed ({e.kind.value}), keeping snapshot from {entry.fetched_at:.0f}")
            else:
                logging.warning(f"Refresh of '{key}' failed ({e.kind.value}): {e}")
            if self._on_error is not None:
                self._on_error(key, e)
            return RefreshResult(key=key, error=e)

        if self._on_update is not None:
            self._on_update(key, snapshot)
        return RefreshResult(key=key, snapshot=snapshot)

    async def tick(self) -> List[RefreshResult]:
        """Refresh every location that currently has subscribers."""
        keys = sorted(self.registry.active_keys())
        if not keys:
            logging.debug("No subscribed locations, nothing to refresh")
            return []

        logging.info(f"Refreshing {len(keys)} subscribed location(s)")
        outcomes = await asyncio.gather(*(self.refresh(key) for key in keys), return_exceptions=True)

        results = []
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, BaseException):
                logging.error(f"Unexpected error refreshing '{key}'", exc_info=outcome)
            else:
                results.append(outcome)
        return results

    async def run(self) -> None:
        """Refresh subscribed locations every interval until cancelled."""
        logging.info(f"Refresh engine started (interval: {self.interval_seconds}s)")
        try:
            while True:
                await self._sleep(self.interval_seconds)
                try:
                    await self.tick()
                except Exception:
                    logging.exception("Refresh tick failed")
        finally:
            logging.info("Refresh engine stopped")

    def _start_fetch(self, key: str, api_key: Optional[str] = None) -> "asyncio.Task[WeatherSnapshot]":
        task = asyncio.ensure_future(self._fetch_and_cache(key, api_key))
        # Only fetches made with the configured credential can be joined
        if api_key is None:
            self._inflight[key] = task
        task.add_done_callback(lambda done: self._fetch_done(key, done))
        return task

    def _remember_label(self, key: str, location: Optional[str]) -> None:
        if location and location.strip():
            self._labels.setdefault(key, location.strip())

    def _fetch_done(self, key: str, task: "asyncio.Task[WeatherSnapshot]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome as retrieved; callers that still wait see it through shield()
        if not task.cancelled():
            task.exception()

    async def _fetch_and_cache(self, key: str, api_key: Optional[str]) -> WeatherSnapshot:
        snapshot = await self._fetch_with_retries(key, api_key)
        self.cache.put(key, snapshot)
        return snapshot

    async def _fetch_with_retries(self, key: str, api_key: Optional[str]) -> WeatherSnapshot:
        query = self._labels.get(key, key)
        logging.info(f"Fetching weather for '{key}'")
        last_error = None
        for attempt in range(self.max_retries):
            try:
                logging.debug(f"Weather fetch attempt {attempt + 1}/{self.max_retries} for '{key}'")
                snapshot = await asyncio.to_thread(self.provider.get_snapshot, query, api_key)
                logging.info(f"Weather fetch successful for '{key}'")
                return snapshot
            except WeatherProviderError as e:
                last_error = e
                logging.warning(f"Weather fetch attempt {attempt + 1} for '{key}' failed: {e}")
                if not e.retryable:
                    break
                if attempt < self.max_retries - 1:
                    retry_delay = self.retry_delay_seconds * (attempt + 1)
                    logging.info(f"Retrying '{key}' in {retry_delay}s...")
                    await self._sleep(retry_delay)

        logging.error(f"Failed to fetch weather for '{key}': {last_error}")
        raise last_error
