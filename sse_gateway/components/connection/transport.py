"""
Streaming transports for SSE connections.

A transport is the write side of one client's HTTP stream. The
connection entry owns it and only ever uses three operations:

- write(chunk) -> bool: non-blocking; False means the write was refused
- close(): terminate the stream (idempotent)
- add_disconnect_listener(callback): notified once when the stream ends
  by itself (client went away, network error, response finished)

QueueTransport bridges these operations to a Starlette StreamingResponse
through a bounded asyncio.Queue. Writes never wait: a full buffer means
the client is not keeping up and the write is refused.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Callable, Protocol, runtime_checkable

from shared.config.logging import get_logger
from sse_gateway.components.core.constants import SSEConstants
from sse_gateway.components.core.errors import TransportError

logger = get_logger(__name__)

DisconnectListener = Callable[[BaseException | None], None]

# Queue marker that ends the stream
_END_OF_STREAM = object()


@runtime_checkable
class StreamTransport(Protocol):
    """Write side of a client stream, as seen by a ConnectionEntry."""

    def write(self, chunk: str) -> bool: ...

    def close(self) -> None: ...

    def add_disconnect_listener(self, callback: DisconnectListener) -> None: ...


class QueueTransport:
    """
    Bounded-queue transport feeding an SSE StreamingResponse.

    Usage:
        transport = QueueTransport()
        transport.write(": hello\\n\\n")
        entry = registry.register("STORE001-LANE01", transport)
        return StreamingResponse(transport.stream(), media_type="text/event-stream")
    """

    def __init__(self, maxsize: int = SSEConstants.TRANSPORT_BUFFER_SIZE) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")
        # Bound enforced in write() so the end marker always fits
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._maxsize = maxsize
        self._listeners: list[DisconnectListener] = []
        self._closed = False
        self._disconnected = False

    @property
    def closed(self) -> bool:
        """Whether the transport refuses further writes."""
        return self._closed

    @property
    def pending(self) -> int:
        """Frames written but not yet streamed to the client."""
        return self._queue.qsize()

    def write(self, chunk: str) -> bool:
        """
        Queue a frame without waiting.

        Returns:
            False if the transport is closed or the buffer is full.
        """
        if self._closed or self._queue.qsize() >= self._maxsize:
            return False
        self._queue.put_nowait(chunk)
        return True

    def close(self) -> None:
        """End the stream. Frames already queued are still delivered."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_END_OF_STREAM)

    def add_disconnect_listener(self, callback: DisconnectListener) -> None:
        """Register a callback fired once when the stream ends on its own."""
        if self._disconnected:
            callback(None)
            return
        self._listeners.append(callback)

    def fail(self, error: BaseException | None = None) -> None:
        """
        Report that the underlying stream ended or errored.

        Marks the transport closed and notifies listeners exactly once.
        Listener failures are logged and do not stop other listeners.
        """
        self._closed = True
        if self._disconnected:
            return
        self._disconnected = True
        listeners, self._listeners = self._listeners, []
        for callback in listeners:
            try:
                callback(error)
            except Exception as e:
                logger.warning(
                    "Disconnect listener failed",
                    error=type(e).__name__,
                    message=str(e),
                )

    async def stream(self) -> AsyncIterator[str]:
        """
        Yield queued frames until the transport is closed.

        When the consumer goes away (the response task is cancelled or the
        generator is closed), disconnect listeners are notified.
        """
        finished = False
        try:
            while True:
                chunk = await self._queue.get()
                if chunk is _END_OF_STREAM:
                    finished = True
                    break
                yield chunk  # type: ignore[misc]
        finally:
            self.fail(None if finished else TransportError(None, "client went away"))
