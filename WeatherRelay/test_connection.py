"""Tests for queue-backed connections."""
import asyncio

import pytest

from connection import ConnectionClosed, QueueConnection


class SendFailed(Exception):
    pass


def test_connection_ids_are_unique():
    assert QueueConnection().connection_id != QueueConnection().connection_id
    assert QueueConnection("fixed").connection_id == "fixed"


def test_deliver_queues_without_sending():
    connection = QueueConnection()
    connection.deliver({"type": "update"})
    connection.deliver({"type": "error"})
    assert connection.pending() == 2


def test_full_outbox_drops_messages():
    connection = QueueConnection(maxsize=1)
    connection.deliver({"type": "update"})
    connection.deliver({"type": "update"})

    assert connection.pending() == 1
    assert connection.dropped == 1


def test_deliver_after_close_raises():
    connection = QueueConnection()
    connection.close()

    assert connection.closed
    with pytest.raises(ConnectionClosed):
        connection.deliver({"type": "update"})


def test_drain_sends_in_order_until_send_fails():
    connection = QueueConnection()
    sent = []

    async def send(message):
        sent.append(message["n"])
        if len(sent) == 3:
            raise SendFailed()

    for n in range(4):
        connection.deliver({"type": "update", "n": n})

    with pytest.raises(SendFailed):
        asyncio.run(connection.drain(send))

    assert sent == [0, 1, 2]
    assert connection.pending() == 1


def test_failed_send_closes_connection():
    connection = QueueConnection()

    async def send(message):
        raise SendFailed()

    connection.deliver({"type": "update"})
    with pytest.raises(SendFailed):
        asyncio.run(connection.drain(send))

    assert connection.closed
    with pytest.raises(ConnectionClosed):
        connection.deliver({"type": "update"})
