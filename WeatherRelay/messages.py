"""Protocol messages exchanged with dashboard clients over the live channel."""
from dataclasses import dataclass
from typing import Any, Optional, Union
from weather_data import WeatherSnapshot
from weather_provider import ErrorKind, WeatherProviderError

# Socket.IO-style event names map onto the plain types
TYPE_ALIASES = {
    "subscribe": "subscribe",
    "weather:subscribe": "subscribe",
    "unsubscribe": "unsubscribe",
    "weather:unsubscribe": "unsubscribe",
    "refresh": "refresh",
    "weather:refresh": "refresh",
}


@dataclass(frozen=True)
class Subscribe:
    location: Optional[str]


@dataclass(frozen=True)
class Unsubscribe:
    location: Optional[str]


@dataclass(frozen=True)
class Refresh:
    location: Optional[str]


Request = Union[Subscribe, Unsubscribe, Refresh]

REQUEST_TYPES = {
    "subscribe": Subscribe,
    "unsubscribe": Unsubscribe,
    "refresh": Refresh,
}


class InvalidRequest(ValueError):
    """A client frame that is not one of the known requests."""
    pass


def parse_request(payload: Any) -> Request:
    """
    Validate a decoded client frame and turn it into a request.

    The location is passed through as given (it may be empty); the relay
    decides how each request treats a missing location.

    Raises:
        InvalidRequest: If the frame is not an object or has an unknown type
    """
    if not isinstance(payload, dict):
        raise InvalidRequest("Message must be a JSON object")

    raw_type = payload.get("type") or payload.get("event")
    request_type = TYPE_ALIASES.get(raw_type) if isinstance(raw_type, str) else None
    if request_type is None:
        raise InvalidRequest(f"Unknown message type: {payload.get('type')!r}")

    # Socket-style frames nest the arguments under "data"
    body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    location = body.get("location", body.get("city"))
    if location is not None and not isinstance(location, str):
        raise InvalidRequest("Location must be a string")

    return REQUEST_TYPES[request_type](location=location)


@dataclass(frozen=True)
class Update:
    location: str
    snapshot: WeatherSnapshot

    def to_dict(self) -> dict:
        return {"type": "update", "location": self.location, "data": self.snapshot.to_dict()}


@dataclass(frozen=True)
class Error:
    location: Optional[str]
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, location: Optional[str], error: WeatherProviderError) -> "Error":
        return cls(location=location, kind=error.kind, message=error.message)

    def to_dict(self) -> dict:
        return {
            "type": "error",
            "location": self.location,
            "message": self.message,
            "code": self.kind.value,
        }
