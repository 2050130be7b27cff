"""Connection-facing side of the live weather updates."""
import logging
from typing import Dict, Optional
from connection import Connection, ConnectionClosed
from messages import Error, Refresh, Request, Subscribe, Unsubscribe, Update
from refresh_engine import RefreshEngine
from subscription_registry import SubscriptionRegistry
from weather_data import WeatherSnapshot, normalize_location
from weather_provider import ErrorKind, WeatherProviderError

LOCATION_MISSING_MESSAGE = "Location not provided"


class BroadcastRelay:
    """
    Accepts subscribe/unsubscribe/refresh requests from connections and
    fans snapshots out to every connection subscribed to a location.

    The relay registers itself as the refresh engine's publisher, so
    periodic and on-demand refreshes reach subscribers through push().
    """

    def __init__(self, engine: RefreshEngine, registry: SubscriptionRegistry):
        self.engine = engine
        self.registry = registry
        self._connections: Dict[str, Connection] = {}
        engine.set_publishers(self.push, self.push_error)

    # ── Connection lifecycle ────────────────────────────────────

    def register(self, connection: Connection) -> None:
        self._connections[connection.connection_id] = connection
        logging.info(f"Client connected: {connection.connection_id}")

    def on_disconnect(self, connection_id: str) -> None:
        """Release every subscription held by the connection."""
        self._connections.pop(connection_id, None)
        released = self.registry.remove_connection(connection_id)
        logging.info(f"Client disconnected: {connection_id} (released {len(released)} location(s))")

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._connections

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    # ── Requests ────────────────────────────────────────────────

    async def handle(self, connection: Connection, request: Request) -> None:
        if isinstance(request, Subscribe):
            await self.on_subscribe(connection, request.location)
        elif isinstance(request, Unsubscribe):
            self.on_unsubscribe(connection, request.location)
        elif isinstance(request, Refresh):
            await self.on_refresh_request(connection, request.location)
        else:
            raise TypeError(f"Unsupported request: {request!r}")

    async def on_subscribe(self, connection: Connection, location: Optional[str]) -> None:
        """
        Subscribe the connection and immediately send it a snapshot.

        A failed initial fetch is reported to this connection only; the
        subscription stays in place so later periodic refreshes reach it.
        """
        key = normalize_location(location)
        if key is None:
            self._send(connection, Error(None, ErrorKind.LOCATION_MISSING, LOCATION_MISSING_MESSAGE))
            return

        if not self.is_connected(connection.connection_id):
            self.register(connection)
        self.registry.subscribe(key, connection.connection_id)
        logging.info(f"Client {connection.connection_id} subscribed to '{key}'")

        try:
            snapshot = await self.engine.get_or_fetch(key, location=location)
        except WeatherProviderError as e:
            logging.error(f"Initial fetch for '{key}' failed: {e}")
            if self._still_subscribed(connection, key):
                self._send(connection, Error.from_exception(key, e))
            return

        if self._still_subscribed(connection, key):
            self._send(connection, Update(key, snapshot))

    def on_unsubscribe(self, connection: Connection, location: Optional[str]) -> None:
        key = normalize_location(location)
        if key is None:
            return
        self.registry.unsubscribe(key, connection.connection_id)
        logging.info(f"Client {connection.connection_id} unsubscribed from '{key}'")

    async def on_refresh_request(self, connection: Connection, location: Optional[str]) -> None:
        """
        Force a refresh of a location for all of its subscribers.

        The requester gets the outcome directly when it is not itself a
        subscriber.
        """
        key = normalize_location(location)
        if key is None:
            self._send(connection, Error(None, ErrorKind.LOCATION_MISSING, LOCATION_MISSING_MESSAGE))
            return

        logging.info(f"Client {connection.connection_id} requested refresh of '{key}'")
        result = await self.engine.refresh(key, location=location)

        if self._still_subscribed(connection, key) or not self.is_connected(connection.connection_id):
            return
        if result.ok:
            self._send(connection, Update(key, result.snapshot))
        else:
            self._send(connection, Error.from_exception(key, result.error))

    # ── Fan-out ─────────────────────────────────────────────────

    def push(self, key: str, snapshot: WeatherSnapshot) -> int:
        """Send a snapshot to every current subscriber of key. Returns the delivery count."""
        return self._broadcast(key, Update(key, snapshot).to_dict())

    def push_error(self, key: str, error: WeatherProviderError) -> int:
        return self._broadcast(key, Error.from_exception(key, error).to_dict())

    def _broadcast(self, key: str, payload: dict) -> int:
        subscribers = self.registry.subscribers_of(key)
        if not subscribers:
            logging.debug(f"No subscribers for '{key}', {payload['type']} not sent")
            return 0

        delivered = 0
        dead = []
        for connection_id in subscribers:
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            try:
                connection.deliver(payload)
                delivered += 1
            except ConnectionClosed as e:
                logging.warning(f"Dropping connection {connection_id}: {e}")
                dead.append(connection_id)
        for connection_id in dead:
            self.on_disconnect(connection_id)

        logging.info(f"Sent {payload['type']} for '{key}' to {delivered} client(s)")
        return delivered

    def _send(self, connection: Connection, message) -> None:
        try:
            connection.deliver(message.to_dict())
        except ConnectionClosed as e:
            logging.warning(f"Dropping connection {connection.connection_id}: {e}")
            self.on_disconnect(connection.connection_id)

    def _still_subscribed(self, connection: Connection, key: str) -> bool:
        return connection.connection_id in self.registry.subscribers_of(key)
