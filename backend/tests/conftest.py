"""
Pytest configuration and fixtures for SSE gateway tests.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from sse_gateway.connection_registry import ConnectionRegistry
from sse_gateway.message_router import BusConfig

TEST_POD = "test-pod"


class FakeTransport:
    """
    In-memory transport that records frames.

    Set refuse_writes to make write() return False, or raise_on_write to
    an exception instance to make it raise.
    """

    def __init__(self):
        self.frames: list[str] = []
        self.close_calls = 0
        self.refuse_writes = False
        self.raise_on_write: Exception | None = None
        self.raise_on_close: Exception | None = None
        self._listeners = []

    def write(self, chunk: str) -> bool:
        if self.raise_on_write is not None:
            raise self.raise_on_write
        if self.refuse_writes:
            return False
        self.frames.append(chunk)
        return True

    def close(self) -> None:
        self.close_calls += 1
        if self.raise_on_close is not None:
            raise self.raise_on_close

    def add_disconnect_listener(self, callback) -> None:
        self._listeners.append(callback)

    def disconnect(self, error: BaseException | None = None) -> None:
        """Simulate the client going away."""
        listeners, self._listeners = self._listeners, []
        for callback in listeners:
            callback(error)

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def data_frames(self) -> list[dict]:
        """Decoded payloads of every data frame written."""
        return [
            json.loads(frame[len("data: "):].strip())
            for frame in self.frames
            if frame.startswith("data: ")
        ]

    def heartbeat_frames(self) -> list[str]:
        return [frame for frame in self.frames if frame.startswith(": heartbeat")]


@pytest.fixture
def transport():
    """A fresh recording transport."""
    return FakeTransport()


@pytest.fixture
def make_transport():
    """Factory for several independent transports in one test."""
    return FakeTransport


@pytest.fixture
def registry():
    """
    Registry with a long heartbeat so timers never fire during a test.

    Registering requires a running event loop, so tests using it are async.
    """
    return ConnectionRegistry(pod_name=TEST_POD, heartbeat_interval=30.0)


@pytest.fixture
def bus_config():
    """Bus config with fast reconnects for tests."""
    return BusConfig(
        host="redis-test",
        port=6380,
        channel="events-test",
        pod_name=TEST_POD,
        max_reconnect_attempts=3,
        reconnect_step=0.001,
        max_reconnect_delay=0.002,
        cleanup_timeout=0.5,
    )


def make_pubsub_reader(*items):
    """
    Build a get_message side effect.

    Each item is returned (or raised, if an exception) once, in order;
    afterwards every call idles like an empty channel. Every call yields
    to the event loop so the listener never spins.
    """
    queue = list(items)

    async def get_message(**kwargs):
        await asyncio.sleep(0.005)
        if not queue:
            return None
        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    return get_message


def make_bus_message(payload, channel="events-test"):
    """A pubsub 'message' dict as returned by get_message."""
    data = payload if isinstance(payload, str) else json.dumps(payload)
    return {"type": "message", "pattern": None, "channel": channel, "data": data}


@pytest.fixture
def mock_pubsub():
    """Mock redis.asyncio PubSub that yields no messages."""
    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=make_pubsub_reader())
    pubsub.aclose = AsyncMock()
    return pubsub


@pytest.fixture
def mock_redis(mock_pubsub):
    """Mock redis.asyncio client returning mock_pubsub."""
    client = MagicMock()
    client.pubsub = MagicMock(return_value=mock_pubsub)
    client.publish = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def pubsub_reader():
    """Factory for scripted get_message side effects."""
    return make_pubsub_reader


@pytest.fixture
def bus_message():
    """Factory for pubsub message dicts."""
    return make_bus_message
