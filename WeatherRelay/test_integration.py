"""Integration tests - can optionally hit real APIs (disabled by default)."""
import asyncio
import os

import pytest

from refresh_engine import RefreshEngine
from reverse_geocoder import NominatimGeocoder
from snapshot_cache import SnapshotCache
from subscription_registry import SubscriptionRegistry
from tomorrow_provider import TomorrowIOProvider

requires_api_key = pytest.mark.skipif(
    not os.environ.get("TOMORROW_IO_API_KEY"),
    reason="TOMORROW_IO_API_KEY not set - skipping integration test"
)


@requires_api_key
def test_tomorrow_io_integration():
    """
    Integration test that hits the real Tomorrow.io API.

    Set TOMORROW_IO_API_KEY environment variable to run this test.
    """
    provider = TomorrowIOProvider(api_key=os.environ.get("TOMORROW_IO_API_KEY"))

    snapshot = provider.get_snapshot("london")

    assert snapshot.current.city
    assert snapshot.current.temperature is not None
    assert snapshot.current.timestamp > 0


@requires_api_key
def test_refresh_engine_integration():
    """Integration test for RefreshEngine with the real API."""
    provider = TomorrowIOProvider(api_key=os.environ.get("TOMORROW_IO_API_KEY"))
    engine = RefreshEngine(provider, SnapshotCache(ttl_seconds=60), SubscriptionRegistry())

    async def scenario():
        first = await engine.get_or_fetch("51.5074,-0.1278")
        second = await engine.get_or_fetch("51.5074,-0.1278")
        return first, second

    first, second = asyncio.run(scenario())

    # Second call should use cache
    assert second is first


@pytest.mark.skipif(
    not os.environ.get("RUN_GEOCODER_INTEGRATION"),
    reason="RUN_GEOCODER_INTEGRATION not set - skipping integration test"
)
def test_nominatim_integration():
    place = NominatimGeocoder().reverse(48.8566, 2.3522)
    assert place is not None
    assert place.city
