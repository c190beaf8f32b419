"""
SSE Connection Registry.

Purely local (per-process) registry of streaming connections keyed by
client name. There is no shared routing table between processes: every
process receives every bus message and delivers only to the clients it
holds here.

One registry is constructed per process and passed explicitly to the
HTTP layer and to the MessageRouter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterator

from shared.config.logging import get_logger
from shared.config.settings import settings
from sse_gateway.components.connection.entry import ConnectionEntry
from sse_gateway.components.core.constants import CloseReason

if TYPE_CHECKING:
    from sse_gateway.components.connection.transport import StreamTransport

logger = get_logger(__name__)

__all__ = ["ConnectionRegistry", "ConnectionEntry"]


class ConnectionRegistry:
    """
    Owns the ConnectionEntry for every client streaming from this process.

    Invariants:
    - At most one entry per client name at any instant.
    - Registering a name that is already present closes the old entry and
      removes it before the new one becomes visible.

    All methods must be called from the event loop thread. Handlers run to
    completion without preemption, so the map needs no lock; entry
    transitions are guarded for idempotency instead.
    """

    def __init__(
        self,
        pod_name: str | None = None,
        heartbeat_interval: float | None = None,
    ) -> None:
        """
        Initialize an empty registry.

        Args:
            pod_name: Name recorded on every entry (default: settings.pod_name).
            heartbeat_interval: Seconds between keepalives
                (default: settings.sse_heartbeat_interval).
        """
        self._connections: dict[str, ConnectionEntry] = {}
        self._pod_name = pod_name or settings.pod_name
        self._heartbeat_interval = heartbeat_interval or settings.sse_heartbeat_interval
        self._evictions = 0

    @property
    def pod_name(self) -> str:
        return self._pod_name

    @property
    def heartbeat_interval(self) -> float:
        return self._heartbeat_interval

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, client_name: str, transport: "StreamTransport") -> ConnectionEntry:
        """
        Register a client stream, evicting any existing one for the name.

        The previous entry is closed synchronously and removed first, so its
        transport is terminated even if the new registration fails.

        Args:
            client_name: Client identity.
            transport: Write side of the new stream; the entry takes ownership.

        Returns:
            The new, started entry.
        """
        existing = self._connections.get(client_name)
        if existing is not None:
            logger.info(
                "Forced eviction: client already connected, closing old connection",
                client_name=client_name,
            )
            existing.close(CloseReason.EVICTED)
            # close() removes the entry; cover an entry that was already closed
            if self._connections.get(client_name) is existing:
                del self._connections[client_name]
            self._evictions += 1

        entry = ConnectionEntry(
            client_name,
            transport,
            self._pod_name,
            registry=self,
            heartbeat_interval=self._heartbeat_interval,
        )
        self._connections[client_name] = entry

        try:
            entry.start()
        except Exception:
            logger.error("Failed to start connection", client_name=client_name, exc_info=True)
            entry.close()
            raise

        logger.info(
            "Registered client",
            client_name=client_name,
            pod_name=self._pod_name,
            total=len(self._connections),
        )
        return entry

    def remove(self, client_name: str, entry: ConnectionEntry | None = None) -> bool:
        """
        Delete a client's entry. Idempotent.

        Called from an entry's own close path. When entry is given, the key
        is only removed if it still maps to that entry, so a late close of an
        evicted entry cannot remove its replacement.

        Returns:
            True if an entry was removed.
        """
        current = self._connections.get(client_name)
        if current is None:
            return False
        if entry is not None and current is not entry:
            return False

        del self._connections[client_name]
        logger.info(
            "Removed client",
            client_name=client_name,
            total=len(self._connections),
        )
        return True

    # =========================================================================
    # Lookups (read-only)
    # =========================================================================

    def get(self, client_name: str) -> ConnectionEntry | None:
        return self._connections.get(client_name)

    def has(self, client_name: str) -> bool:
        return client_name in self._connections

    def count(self) -> int:
        return len(self._connections)

    def enumerate(self) -> list[dict[str, Any]]:
        """Snapshot stats for every registered connection."""
        return [entry.get_stats() for entry in list(self._connections.values())]

    def update_activity(self, client_name: str) -> None:
        entry = self._connections.get(client_name)
        if entry is not None:
            entry.update_activity()

    def get_stats(self) -> dict[str, Any]:
        """Registry-level statistics for health endpoints."""
        return {
            "pod_name": self._pod_name,
            "total_connections": len(self._connections),
            "evictions": self._evictions,
            "heartbeat_interval": self._heartbeat_interval,
        }

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, client_name: object) -> bool:
        return client_name in self._connections

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._connections))

    # =========================================================================
    # Shutdown
    # =========================================================================

    def close_all(self) -> int:
        """
        Close every connection and clear the registry.

        A failure closing one entry is logged and never stops the sweep.

        Returns:
            Number of entries swept.
        """
        entries = list(self._connections.values())
        logger.info("Closing all connections", count=len(entries))

        for entry in entries:
            try:
                entry.close(CloseReason.SHUTDOWN)
            except Exception as e:
                logger.error(
                    "Error closing connection",
                    client_name=entry.client_name,
                    error=str(e),
                    exc_info=True,
                )

        self._connections.clear()
        return len(entries)
