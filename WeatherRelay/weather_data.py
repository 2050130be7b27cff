"""Weather domain model - pure data structures independent of any API."""
import re
import time
from dataclasses import dataclass, field
from typing import Optional, Tuple

COORDINATES_PATTERN = re.compile(r"^-?\d+\.?\d*,-?\d+\.?\d*$")


def normalize_location(value: Optional[str]) -> Optional[str]:
    """
    Normalize a location string into the key used by the cache and registry.

    Returns None for a missing or blank location.
    """
    if value is None or not isinstance(value, str):
        return None
    key = value.strip().lower()
    return key or None


def is_coordinates(location: str) -> bool:
    """True for "lat,lon" strings such as "-23.55,-46.63"."""
    return bool(COORDINATES_PATTERN.match(location.strip()))


@dataclass(frozen=True)
class CurrentConditions:
    """Current conditions at a location."""
    city: str
    country: str
    temperature: int
    feels_like: int
    humidity: int
    wind_speed: int  # km/h
    wind_direction: int  # degrees
    uv_index: int
    description: str
    icon: str  # e.g. "01d", "10d"
    pressure: int  # hPa
    visibility: float  # km
    timestamp: int  # UNIX timestamp in milliseconds

    def to_dict(self) -> dict:
        return {
            "city": self.city,
            "country": self.country,
            "temperature": self.temperature,
            "feelsLike": self.feels_like,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "windDirection": self.wind_direction,
            "uvIndex": self.uv_index,
            "description": self.description,
            "icon": self.icon,
            "pressure": self.pressure,
            "visibility": self.visibility,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class HourlyForecast:
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    temperature: int
    feels_like: int
    humidity: int
    wind_speed: int
    description: str
    icon: str

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "time": self.time,
            "temperature": self.temperature,
            "feelsLike": self.feels_like,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "description": self.description,
            "icon": self.icon,
        }


@dataclass(frozen=True)
class DailyForecast:
    date: str
    day: str  # weekday name
    max_temp: int
    min_temp: int
    description: str
    icon: str
    humidity: int
    wind_speed: int

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "day": self.day,
            "maxTemp": self.max_temp,
            "minTemp": self.min_temp,
            "description": self.description,
            "icon": self.icon,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
        }


@dataclass(frozen=True)
class WeatherSnapshot:
    """
    One fetched weather payload for a location.

    Snapshots are never mutated; a refresh produces a new one that
    supersedes the old in the cache.
    """
    current: CurrentConditions
    hourly: Tuple[HourlyForecast, ...] = ()
    daily: Tuple[DailyForecast, ...] = ()
    captured_at: float = field(default_factory=time.time)

    def age(self, now: Optional[float] = None) -> float:
        """Seconds since this snapshot was captured."""
        current_time = time.time() if now is None else now
        return current_time - self.captured_at

    def to_dict(self) -> dict:
        """Wire form sent to dashboard clients."""
        return {
            "current": self.current.to_dict(),
            "hourly": [item.to_dict() for item in self.hourly],
            "daily": [item.to_dict() for item in self.daily],
        }


@dataclass(frozen=True)
class LocationMatch:
    """A location returned by a provider search."""
    name: str
    country: str
    lat: float
    lon: float
    state: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "country": self.country,
            "state": self.state,
            "lat": self.lat,
            "lon": self.lon,
        }


@dataclass(frozen=True)
class PlaceName:
    """Best-effort place name resolved from coordinates."""
    city: str
    country: str = ""

    def to_dict(self) -> dict:
        return {"city": self.city, "country": self.country}
