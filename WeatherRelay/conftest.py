"""Shared fixtures for relay tests."""
import threading
import time

import pytest

from connection import Connection, ConnectionClosed
from weather_data import CurrentConditions, DailyForecast, HourlyForecast, WeatherSnapshot, normalize_location
from weather_provider import WeatherProviderBase


def make_snapshot(city="Tokyo", temperature=20, captured_at=None):
    """Build a small but complete snapshot."""
    current = CurrentConditions(
        city=city,
        country="Japan",
        temperature=temperature,
        feels_like=temperature - 1,
        humidity=60,
        wind_speed=18,
        wind_direction=90,
        uv_index=3,
        description="Clear sky",
        icon="01d",
        pressure=1013,
        visibility=10.0,
        timestamp=1700000000000,
    )
    hourly = (
        HourlyForecast(
            date="2023-11-14",
            time="12:00",
            temperature=temperature,
            feels_like=temperature - 1,
            humidity=60,
            wind_speed=18,
            description="Clear sky",
            icon="01d",
        ),
    )
    daily = (
        DailyForecast(
            date="2023-11-14",
            day="Tuesday",
            max_temp=temperature + 4,
            min_temp=temperature - 6,
            description="Clear sky",
            icon="01d",
            humidity=55,
            wind_speed=14,
        ),
    )
    return WeatherSnapshot(
        current=current,
        hourly=hourly,
        daily=daily,
        captured_at=time.time() if captured_at is None else captured_at,
    )


class MockProvider(WeatherProviderBase):
    """
    Mock weather provider for testing.

    responses maps a location key to a snapshot, an exception to raise, or
    a list of those consumed one per call. Lookups ignore case, as the real
    API does. Unknown locations get a snapshot named after the location as
    it was queried.
    """

    def __init__(self, delay=0.0):
        self.responses = {}
        self.matches = []
        self.delay = delay
        self.calls = []
        self._lock = threading.Lock()

    @property
    def call_count(self):
        return len(self.calls)

    def calls_for(self, location):
        return sum(1 for called, _ in self.calls if normalize_location(called) == location)

    def get_snapshot(self, location, api_key=None):
        with self._lock:
            self.calls.append((location, api_key))
            response = self.responses.get(normalize_location(location))
            if isinstance(response, list):
                response = response.pop(0) if len(response) > 1 else response[0]
        if self.delay:
            time.sleep(self.delay)
        if response is None:
            return make_snapshot(city=location)
        if isinstance(response, Exception):
            raise response
        return response

    def search_locations(self, query, api_key=None):
        self.calls.append((f"search:{query}", api_key))
        return list(self.matches)


class RecordingConnection(Connection):
    """Connection that keeps every delivered message."""

    def __init__(self, connection_id):
        super().__init__(connection_id)
        self.messages = []
        self.closed = False

    def deliver(self, message):
        if self.closed:
            raise ConnectionClosed(f"{self.connection_id} closed")
        self.messages.append(message)

    def of_type(self, message_type):
        return [m for m in self.messages if m["type"] == message_type]


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_snapshot():
    return make_snapshot()
