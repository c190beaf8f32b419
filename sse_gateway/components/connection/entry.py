"""
Connection Entry.

One client's streaming connection: the transport it owns, its heartbeat
timer and the ALIVE -> CLOSED state machine.

Four independent triggers can end a connection:

1. the transport reports a disconnect/error/completion on its own
2. a heartbeat keepalive cannot be written
3. an event write fails
4. a new registration for the same client evicts this one

All of them call close(), which runs its effects exactly once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

from shared.config.logging import get_logger
from sse_gateway.components.connection.heartbeat import HeartbeatTimer
from sse_gateway.components.core.constants import CloseReason, ConnectionState, SSEConstants
from sse_gateway.components.events.types import format_event_frame, format_heartbeat_frame

if TYPE_CHECKING:
    from sse_gateway.components.connection.transport import StreamTransport

logger = get_logger(__name__)


class OwningRegistry(Protocol):
    """The part of ConnectionRegistry an entry calls back into."""

    def remove(self, client_name: str, entry: "ConnectionEntry | None" = None) -> bool: ...


class ConnectionEntry:
    """
    A registered client stream.

    Attributes:
        client_name: Immutable client identity, the registry key.
        pod_name: Process holding the connection.
        transport: Exclusively owned write side of the stream.
        connected_at: UTC time the entry was created.
        last_activity: UTC time of the last delivered event.
        event_count: Events delivered so far.
        close_reason: Trigger that closed the entry, None while alive.
    """

    def __init__(
        self,
        client_name: str,
        transport: "StreamTransport",
        pod_name: str,
        registry: OwningRegistry | None = None,
        heartbeat_interval: float = SSEConstants.HEARTBEAT_INTERVAL,
    ) -> None:
        self._client_name = client_name
        self.transport = transport
        self.pod_name = pod_name
        self._registry = registry
        self.connected_at = datetime.now(timezone.utc)
        self.last_activity = self.connected_at
        self.event_count = 0
        self.close_reason: CloseReason | None = None
        self._state = ConnectionState.ALIVE
        self._heartbeat = HeartbeatTimer(
            self.send_heartbeat,
            interval=heartbeat_interval,
            on_error=lambda _e: self.close(CloseReason.HEARTBEAT_FAILED),
        )

    @property
    def client_name(self) -> str:
        return self._client_name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_alive(self) -> bool:
        return self._state is ConnectionState.ALIVE

    @property
    def heartbeat(self) -> HeartbeatTimer:
        return self._heartbeat

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Begin watching the connection.

        Subscribes to passive transport disconnects and schedules the
        heartbeat. Must be called from the event loop thread.
        """
        if not self.is_alive:
            return
        self.transport.add_disconnect_listener(self._on_transport_disconnect)
        # The listener may have fired immediately for an already-dead stream
        if self.is_alive:
            self._heartbeat.start()

    def close(self, reason: CloseReason | None = None) -> bool:
        """
        Move to CLOSED and release everything the entry owns.

        Idempotent: only the first call has any effect. In order it marks
        the entry closed, cancels the heartbeat, ends the transport (errors
        are logged, never raised) and removes the entry from its registry.

        Returns:
            True if this call closed the entry, False if it was already closed.
        """
        if self._state is ConnectionState.CLOSED:
            return False

        self._state = ConnectionState.CLOSED
        self.close_reason = reason
        logger.info(
            "Closing connection",
            client_name=self._client_name,
            reason=reason.value if reason else None,
            events_sent=self.event_count,
        )

        self._heartbeat.cancel()

        try:
            self.transport.close()
        except Exception as e:
            logger.warning(
                "Error ending stream",
                client_name=self._client_name,
                error=type(e).__name__,
                message=str(e),
            )

        if self._registry is not None:
            self._registry.remove(self._client_name, self)
        return True

    # =========================================================================
    # Writes
    # =========================================================================

    def send_event(self, event: Any) -> bool:
        """
        Write one event to the client without blocking.

        A refused or raising write is terminal for the connection.

        Args:
            event: JSON-serializable payload or StreamEvent.

        Returns:
            True if the event was written, False otherwise.
        """
        if not self.is_alive:
            logger.debug(
                "Cannot send: connection is closed",
                client_name=self._client_name,
            )
            return False

        try:
            frame = format_event_frame(event)
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning(
                "Event is not JSON serializable, closing connection",
                client_name=self._client_name,
                error=str(e),
            )
            self.close(CloseReason.WRITE_FAILED)
            return False

        if not self._write(frame, CloseReason.WRITE_FAILED):
            return False

        self.event_count += 1
        self.last_activity = datetime.now(timezone.utc)
        logger.info(
            "Event sent",
            client_name=self._client_name,
            event_number=self.event_count,
            action=_action_of(event),
        )
        return True

    def send_heartbeat(self) -> bool:
        """
        Write an inert keepalive comment.

        Called by the heartbeat timer. A failed write closes the connection.
        """
        if not self.is_alive:
            return False
        if not self._write(format_heartbeat_frame(), CloseReason.HEARTBEAT_FAILED):
            return False
        logger.debug("Heartbeat sent", client_name=self._client_name)
        return True

    def _write(self, frame: str, failure_reason: CloseReason) -> bool:
        try:
            written = self.transport.write(frame)
        except Exception as e:
            logger.warning(
                "Error writing to stream, closing connection",
                client_name=self._client_name,
                reason=failure_reason.value,
                error=type(e).__name__,
                message=str(e),
            )
            self.close(failure_reason)
            return False

        if not written:
            logger.warning(
                "Write refused, closing connection",
                client_name=self._client_name,
                reason=failure_reason.value,
            )
            self.close(failure_reason)
            return False
        return True

    def _on_transport_disconnect(self, error: BaseException | None) -> None:
        if not self.is_alive:
            return
        logger.info(
            "Client disconnected",
            client_name=self._client_name,
            error=type(error).__name__ if error else None,
        )
        self.close(CloseReason.TRANSPORT_DISCONNECT)

    # =========================================================================
    # Stats
    # =========================================================================

    def update_activity(self) -> None:
        """Mark the connection as active now."""
        self.last_activity = datetime.now(timezone.utc)

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of the connection. Safe in any state."""
        now = datetime.now(timezone.utc)
        return {
            "clientName": self._client_name,
            "podName": self.pod_name,
            "connectedAt": self.connected_at.isoformat(),
            "lastActivity": self.last_activity.isoformat(),
            "eventCount": self.event_count,
            "isAlive": self.is_alive,
            "uptime": int((now - self.connected_at).total_seconds()),
        }

    def __repr__(self) -> str:
        return f"ConnectionEntry(client_name={self._client_name!r}, state={self._state.value})"


def _action_of(event: Any) -> str:
    action = getattr(event, "action", None)
    if action is None and isinstance(event, dict):
        action = event.get("action")
    return action or "event"
