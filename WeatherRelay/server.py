"""FastAPI application: live-update WebSocket plus the dashboard's REST routes."""
import asyncio
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, Set

from fastapi import FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from config import Settings, load_settings
from connection import QueueConnection
from messages import Error, parse_request
from refresh_engine import RefreshEngine
from relay import BroadcastRelay
from reverse_geocoder import NominatimGeocoder
from snapshot_cache import SnapshotCache
from subscription_registry import SubscriptionRegistry
from tomorrow_provider import TomorrowIOProvider
from weather_data import normalize_location
from weather_provider import ErrorKind, WeatherProviderBase, WeatherProviderError

# Placeholder the dashboard shows before geolocation resolves
CURRENT_LOCATION_LABEL = "Current Location"


def _error_response(message: str, kind: ErrorKind, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message, "code": kind.value}, status_code=status_code)


async def _provider_error_handler(request: Request, exc: WeatherProviderError) -> JSONResponse:
    logging.error(f"{request.url.path} failed: {exc.kind.value}: {exc.message}")
    return _error_response(exc.message, exc.kind, exc.status_code)


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[WeatherProviderBase] = None,
    geocoder: Optional[NominatimGeocoder] = None,
    clock: Callable[[], float] = time.time,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FastAPI:
    """
    Wire the cache, registry, refresh engine and relay into an application.

    Args:
        settings: Configuration; loaded from the environment when omitted
        provider: Weather provider; Tomorrow.io when omitted
        geocoder: Reverse geocoder; Nominatim when omitted
        clock: Time source for cache expiry
        sleep: Coroutine the refresh loop waits with
    """
    settings = settings or load_settings()
    provider = provider or TomorrowIOProvider(
        api_key=settings.api_key,
        timeout=settings.http_timeout_seconds,
    )
    geocoder = geocoder or NominatimGeocoder(
        user_agent=settings.geocoder_user_agent,
        timeout=settings.http_timeout_seconds,
    )

    cache = SnapshotCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    registry = SubscriptionRegistry()
    engine = RefreshEngine(
        provider=provider,
        cache=cache,
        registry=registry,
        interval_seconds=settings.refresh_interval_seconds,
        max_retries=settings.fetch_max_retries,
        retry_delay_seconds=settings.fetch_retry_delay_seconds,
        sleep=sleep,
    )
    relay = BroadcastRelay(engine, registry)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        refresher = asyncio.create_task(engine.run())
        try:
            yield
        finally:
            refresher.cancel()
            await asyncio.gather(refresher, return_exceptions=True)

    app = FastAPI(title="Weather Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.relay = relay

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_exception_handler(WeatherProviderError, _provider_error_handler)

    @app.get("/", response_class=PlainTextResponse)
    async def index():
        return "WebSocket Server Running"

    @app.get("/api/weather")
    async def get_weather(city: Optional[str] = None, x_api_key: Optional[str] = Header(default=None)):
        key = normalize_location(city)
        if key is None:
            return _error_response("Query parameter 'city' is required", ErrorKind.LOCATION_MISSING, 400)
        if key == CURRENT_LOCATION_LABEL.lower():
            return _error_response(
                "Coordinates not provided. Use the format 'lat,lon'.",
                ErrorKind.LOCATION_MISSING,
                400,
            )
        snapshot = await engine.get_or_fetch(key, api_key=x_api_key, location=city)
        return snapshot.to_dict()

    @app.get("/api/weather/search")
    async def search(q: Optional[str] = None, x_api_key: Optional[str] = Header(default=None)):
        if not q or len(q.strip()) < 2:
            return []
        matches = await asyncio.to_thread(provider.search_locations, q.strip(), x_api_key)
        return [match.to_dict() for match in matches]

    @app.get("/api/weather/geocode")
    async def geocode(lat: Optional[str] = None, lon: Optional[str] = None):
        if not lat or not lon:
            return JSONResponse({"error": "Query parameters 'lat' and 'lon' are required"}, status_code=400)
        try:
            latitude = float(lat)
            longitude = float(lon)
        except ValueError:
            return JSONResponse({"error": "Invalid coordinates"}, status_code=400)

        place = await asyncio.to_thread(geocoder.reverse, latitude, longitude)
        if place is None:
            return {
                "city": CURRENT_LOCATION_LABEL,
                "country": "",
                "coordinates": {"lat": latitude, "lon": longitude},
            }
        return place.to_dict()

    @app.websocket("/ws")
    async def live_updates(websocket: WebSocket):
        await websocket.accept()
        connection = QueueConnection()
        relay.register(connection)
        writer = asyncio.create_task(connection.drain(websocket.send_json))
        handlers: Set[asyncio.Task] = set()

        def handler_done(task: asyncio.Task) -> None:
            handlers.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logging.error(
                    f"Request from {connection.connection_id} failed",
                    exc_info=task.exception(),
                )

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    request = parse_request(json.loads(text))
                except ValueError as e:  # malformed JSON or InvalidRequest
                    logging.warning(f"Rejected message from {connection.connection_id}: {e}")
                    connection.deliver(Error(None, ErrorKind.INVALID_REQUEST, str(e)).to_dict())
                    continue
                # Keep reading while a fetch is pending so unsubscribes and
                # disconnects are seen before its result is sent
                task = asyncio.create_task(relay.handle(connection, request))
                handlers.add(task)
                task.add_done_callback(handler_done)
                # Let the handler register interest before the next frame is read
                await asyncio.sleep(0)
        except WebSocketDisconnect:
            pass
        finally:
            connection.close()
            relay.on_disconnect(connection.connection_id)
            for task in handlers:
                task.cancel()
            writer.cancel()
            await asyncio.gather(writer, *handlers, return_exceptions=True)

    return app
