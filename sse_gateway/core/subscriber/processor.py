"""
Bus Message Processing.

Turns a raw broadcast-bus message into at most one local delivery.
Messages are broadcast to every gateway process; each process delivers
only to clients in its own registry and drops the rest.

Nothing in this module raises: malformed records and failed deliveries
are logged, counted and dropped. Delivery is at-most-once.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from sse_gateway.components.core.errors import ProtocolError
from sse_gateway.components.events.types import StreamEvent

if TYPE_CHECKING:
    from sse_gateway.components.metrics.collector import MetricsCollector
    from sse_gateway.connection_registry import ConnectionRegistry

logger = get_logger(__name__)


class DeliveryOutcome(str, Enum):
    """What happened to one inbound message."""

    DELIVERED = "delivered"
    NOT_LOCAL = "not_local"  # Target client is not held by this process
    FAILED = "failed"  # Target found, write failed, connection closed
    INVALID = "invalid"  # Malformed record, dropped


def parse_bus_message(raw: str | bytes) -> StreamEvent:
    """
    Parse a raw bus message into a StreamEvent.

    Raises:
        ProtocolError: If the message is not a JSON object with a target.
    """
    return StreamEvent.from_json(raw)


def route_to_client(
    event: StreamEvent,
    registry: "ConnectionRegistry",
    metrics: "MetricsCollector | None" = None,
) -> DeliveryOutcome:
    """
    Deliver an event to its target if this process holds the client.

    A missing target leaves the registry untouched. A failed write is not
    retried; the entry closes itself and leaves the registry.
    """
    client_name = event.client_name
    entry = registry.get(client_name)
    if entry is None:
        logger.debug(
            "Client not on this pod, ignoring",
            client_name=client_name,
            pod_name=registry.pod_name,
        )
        if metrics is not None:
            metrics.record_not_local()
        return DeliveryOutcome.NOT_LOCAL

    if not entry.send_event(event):
        logger.warning(
            "Failed to send event, connection may be broken",
            client_name=client_name,
            action=event.label,
            event_id=event.event_id,
        )
        if metrics is not None:
            metrics.record_failed()
        return DeliveryOutcome.FAILED

    logger.info(
        "Event delivered",
        client_name=client_name,
        action=event.label,
        event_id=event.event_id,
        pod_name=registry.pod_name,
    )
    if metrics is not None:
        metrics.record_delivered()
    return DeliveryOutcome.DELIVERED


def handle_incoming_message(
    channel: str | None,
    raw: str | bytes,
    registry: "ConnectionRegistry",
    metrics: "MetricsCollector | None" = None,
) -> DeliveryOutcome:
    """
    Handle one message from the bus.

    Args:
        channel: Channel the message arrived on (for logging).
        raw: Message body as published.
        registry: Local connection registry.
        metrics: Optional routing counters.

    Returns:
        The delivery outcome. Never raises.
    """
    if metrics is not None:
        metrics.record_received()
    logger.debug("Received message", channel=channel, size=len(raw) if raw is not None else 0)

    try:
        event = parse_bus_message(raw)
    except ProtocolError as e:
        logger.warning("Dropping invalid message", channel=channel, error=str(e))
        if metrics is not None:
            metrics.record_invalid()
        return DeliveryOutcome.INVALID

    try:
        return route_to_client(event, registry, metrics)
    except Exception as e:
        # Last line of defence: one bad message must never stop the listener
        logger.error(
            "Error handling message",
            channel=channel,
            client_name=event.client_name,
            error=str(e),
            exc_info=True,
        )
        if metrics is not None:
            metrics.record_failed()
        return DeliveryOutcome.FAILED
