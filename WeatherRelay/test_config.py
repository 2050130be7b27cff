"""Tests for configuration loading and command-line overrides."""
import pytest

import config
from config import Settings, load_settings
from main import apply_overrides, parse_args

ENV_VARS = (
    "TOMORROW_IO_API_KEY", "WS_HOST", "WS_PORT", "APP_ENV", "APP_URL",
    "CACHE_TTL_SECONDS", "REFRESH_INTERVAL_SECONDS", "HTTP_TIMEOUT_SECONDS",
    "FETCH_MAX_RETRIES", "FETCH_RETRY_DELAY_SECONDS", "GEOCODER_USER_AGENT",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: False)
    return monkeypatch


def test_defaults(clean_env):
    settings = load_settings()

    assert settings.api_key is None
    assert settings.host == "localhost"
    assert settings.port == 3001
    assert settings.cache_ttl_seconds == 900
    assert settings.refresh_interval_seconds == 300
    assert settings.fetch_max_retries == 2


def test_values_from_environment(clean_env):
    clean_env.setenv("TOMORROW_IO_API_KEY", "secret")
    clean_env.setenv("WS_HOST", "0.0.0.0")
    clean_env.setenv("WS_PORT", "8080")
    clean_env.setenv("CACHE_TTL_SECONDS", "60")
    clean_env.setenv("FETCH_RETRY_DELAY_SECONDS", "0.25")

    settings = load_settings()

    assert settings.api_key == "secret"
    assert settings.host == "0.0.0.0"
    assert settings.port == 8080
    assert settings.cache_ttl_seconds == 60
    assert settings.fetch_retry_delay_seconds == 0.25


def test_empty_api_key_is_missing(clean_env):
    clean_env.setenv("TOMORROW_IO_API_KEY", "")
    assert load_settings().api_key is None


def test_invalid_number_exits(clean_env):
    clean_env.setenv("WS_PORT", "three thousand")
    with pytest.raises(SystemExit) as exc_info:
        load_settings()
    assert "WS_PORT" in str(exc_info.value)


def test_cors_origin_depends_on_environment():
    assert Settings().cors_origin == "http://localhost:3000"
    assert Settings(app_env="production", app_url="https://weather.example.com").cors_origin == \
        "https://weather.example.com"


def test_command_line_overrides_settings():
    args = parse_args(["--port", "9000", "--refresh", "60"])
    settings = apply_overrides(Settings(host="example", cache_ttl_seconds=120), args)

    assert settings.port == 9000
    assert settings.refresh_interval_seconds == 60
    assert settings.host == "example"
    assert settings.cache_ttl_seconds == 120


def test_parse_args_defaults():
    args = parse_args([])
    assert args.host is None
    assert args.port is None
    assert not args.verbose
