"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional
from weather_data import LocationMatch, WeatherSnapshot


class ErrorKind(str, Enum):
    """Error codes surfaced to dashboard clients."""
    LOCATION_MISSING = "LOCATION_MISSING"
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    RATE_LIMITED = "RATE_LIMITED"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    DATA_UNAVAILABLE = "DATA_UNAVAILABLE"
    INVALID_REQUEST = "INVALID_REQUEST"
    PROVIDER_ERROR = "PROVIDER_ERROR"


# HTTP status used when an error is returned from a REST route
ERROR_STATUS = {
    ErrorKind.LOCATION_MISSING: 400,
    ErrorKind.CREDENTIAL_MISSING: 500,
    ErrorKind.INVALID_CREDENTIAL: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.LOCATION_NOT_FOUND: 404,
    ErrorKind.NETWORK_ERROR: 503,
    ErrorKind.DATA_UNAVAILABLE: 500,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.PROVIDER_ERROR: 502,
}


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.PROVIDER_ERROR,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code if status_code is not None else ERROR_STATUS[kind]

    @property
    def retryable(self) -> bool:
        """Only transport failures are worth retrying."""
        return self.kind is ErrorKind.NETWORK_ERROR


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def get_snapshot(self, location: str, api_key: Optional[str] = None) -> WeatherSnapshot:
        """
        Fetch current conditions and forecasts for a location.

        Args:
            location: Place name or "lat,lon" pair
            api_key: Credential overriding the provider's configured one

        Returns:
            WeatherSnapshot: Current, hourly and daily weather

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """
        pass

    def search_locations(self, query: str, api_key: Optional[str] = None) -> List[LocationMatch]:
        """Find locations matching a free-text query. Providers without search return nothing."""
        return []
