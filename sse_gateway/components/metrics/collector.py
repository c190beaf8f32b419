"""
Metrics Collector for the SSE Gateway.

Counters for bus message routing. All updates happen on the event loop
thread, so plain integer increments are sufficient.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class RoutingMetrics:
    """Outcome counters for inbound bus messages."""

    received: int = 0
    delivered: int = 0
    not_local: int = 0  # Target client held by another process
    invalid: int = 0
    failed: int = 0  # Target found but the write failed


class MetricsCollector:
    """
    Metrics collector for message routing.

    Usage:
        metrics = MetricsCollector()
        metrics.record_received()
        metrics.record_delivered()
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self._routing = RoutingMetrics()

    def record_received(self) -> None:
        self._routing.received += 1

    def record_delivered(self) -> None:
        self._routing.delivered += 1

    def record_not_local(self) -> None:
        self._routing.not_local += 1

    def record_invalid(self) -> None:
        self._routing.invalid += 1

    def record_failed(self) -> None:
        self._routing.failed += 1

    def get_snapshot(self) -> dict[str, Any]:
        """Get a copy of all counters."""
        return asdict(self._routing)

    def reset(self) -> None:
        """Reset all counters (for testing)."""
        self._routing = RoutingMetrics()
