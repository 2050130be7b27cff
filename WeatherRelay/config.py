"""Configuration - loads from environment and .env, provides defaults."""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_DEV_ORIGIN = "http://localhost:3000"


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    host: str = "localhost"
    port: int = 3001
    app_env: str = "development"
    app_url: str = "*"
    cache_ttl_seconds: int = 900
    refresh_interval_seconds: int = 300
    http_timeout_seconds: int = 10
    fetch_max_retries: int = 2
    fetch_retry_delay_seconds: float = 1.0
    geocoder_user_agent: str = "ClimaDash/1.0 (Weather Dashboard)"

    @property
    def cors_origin(self) -> str:
        return self.app_url if self.app_env == "production" else DEFAULT_DEV_ORIGIN


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid {name}: {raw!r} is not an integer") from exc


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise SystemExit(f"Invalid {name}: {raw!r} is not a number") from exc


def load_settings() -> Settings:
    """
    Build settings from the environment (and a .env file if present).

    A missing TOMORROW_IO_API_KEY is not fatal here: each fetch attempted
    without a credential fails on its own with CREDENTIAL_MISSING.
    """
    load_dotenv()
    settings = Settings(
        api_key=os.getenv("TOMORROW_IO_API_KEY") or None,
        host=os.getenv("WS_HOST", "localhost"),
        port=_int("WS_PORT", 3001),
        app_env=os.getenv("APP_ENV", "development"),
        app_url=os.getenv("APP_URL", "*"),
        cache_ttl_seconds=_int("CACHE_TTL_SECONDS", 900),
        refresh_interval_seconds=_int("REFRESH_INTERVAL_SECONDS", 300),
        http_timeout_seconds=_int("HTTP_TIMEOUT_SECONDS", 10),
        fetch_max_retries=_int("FETCH_MAX_RETRIES", 2),
        fetch_retry_delay_seconds=_float("FETCH_RETRY_DELAY_SECONDS", 1.0),
        geocoder_user_agent=os.getenv("GEOCODER_USER_AGENT", "ClimaDash/1.0 (Weather Dashboard)"),
    )

    if not settings.api_key:
        logging.warning("TOMORROW_IO_API_KEY not set; weather fetches will fail until one is configured")
    logging.info(
        "Configuration loaded: host=%s port=%s env=%s cache_ttl=%ss refresh=%ss",
        settings.host,
        settings.port,
        settings.app_env,
        settings.cache_ttl_seconds,
        settings.refresh_interval_seconds,
    )
    return settings
