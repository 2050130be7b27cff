"""Client connections as seen by the broadcast relay."""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

DEFAULT_OUTBOX_SIZE = 100


class Connection(ABC):
    """One client channel. The relay only ever hands it messages to deliver."""

    def __init__(self, connection_id: Optional[str] = None):
        self.connection_id = connection_id or uuid.uuid4().hex[:12]

    @abstractmethod
    def deliver(self, message: dict) -> None:
        """
        Queue a message for the client without waiting for it to be sent.

        Raises:
            ConnectionClosed: If the connection can no longer accept messages
        """
        pass


class ConnectionClosed(Exception):
    """Raised when delivering to a connection that has gone away."""
    pass


class QueueConnection(Connection):
    """
    Connection backed by a bounded outbound queue.

    Delivery never blocks the caller: messages are put on the queue and a
    writer task drains it to the transport. When the queue is full the
    message is dropped, since pushes are best-effort.
    """

    def __init__(self, connection_id: Optional[str] = None, maxsize: int = DEFAULT_OUTBOX_SIZE):
        super().__init__(connection_id)
        self._outbox: "asyncio.Queue[dict]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, message: dict) -> None:
        if self._closed:
            raise ConnectionClosed(f"Connection {self.connection_id} is closed")
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1
            logging.warning(f"Outbox full for {self.connection_id}, dropped {message.get('type')} message")

    async def drain(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """
        Send queued messages until the writer is cancelled or sending fails.

        Either way the connection is closed afterwards, so later deliveries
        raise ConnectionClosed and the relay drops it.
        """
        try:
            while True:
                message = await self._outbox.get()
                await send(message)
        finally:
            self.close()

    def close(self) -> None:
        self._closed = True

    def pending(self) -> int:
        return self._outbox.qsize()
