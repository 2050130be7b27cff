"""Tests for protocol message parsing and encoding."""
import pytest

from conftest import make_snapshot
from messages import Error, InvalidRequest, Refresh, Subscribe, Unsubscribe, Update, parse_request
from weather_provider import ErrorKind, WeatherProviderError


@pytest.mark.parametrize("payload,expected", [
    ({"type": "subscribe", "location": "Tokyo"}, Subscribe("Tokyo")),
    ({"type": "unsubscribe", "location": "Tokyo"}, Unsubscribe("Tokyo")),
    ({"type": "refresh", "location": "Tokyo"}, Refresh("Tokyo")),
    ({"type": "weather:subscribe", "city": "Paris"}, Subscribe("Paris")),
    ({"event": "weather:refresh", "data": {"city": "Paris"}}, Refresh("Paris")),
    ({"type": "subscribe"}, Subscribe(None)),
    ({"type": "subscribe", "location": ""}, Subscribe("")),
])
def test_parse_request(payload, expected):
    assert parse_request(payload) == expected


@pytest.mark.parametrize("payload", [
    ["subscribe", "Tokyo"],
    "subscribe",
    {"location": "Tokyo"},
    {"type": "publish", "location": "Tokyo"},
    {"type": ["subscribe"], "location": "Tokyo"},
    {"type": "subscribe", "location": 42},
])
def test_parse_request_rejects_malformed_frames(payload):
    with pytest.raises(InvalidRequest):
        parse_request(payload)


def test_invalid_request_is_a_value_error():
    assert issubclass(InvalidRequest, ValueError)


def test_update_to_dict():
    message = Update("tokyo", make_snapshot()).to_dict()
    assert message["type"] == "update"
    assert message["location"] == "tokyo"
    assert set(message["data"]) == {"current", "hourly", "daily"}


def test_error_from_exception():
    error = WeatherProviderError("Invalid API key", ErrorKind.INVALID_CREDENTIAL)
    assert Error.from_exception("paris", error).to_dict() == {
        "type": "error",
        "location": "paris",
        "message": "Invalid API key",
        "code": "INVALID_CREDENTIAL",
    }
