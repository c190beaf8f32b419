"""
Subscriber Module.

Message processing extracted from the MessageRouter:
- processor.py: parse, validate and route one bus message
"""

from sse_gateway.core.subscriber.processor import (
    DeliveryOutcome,
    parse_bus_message,
    route_to_client,
    handle_incoming_message,
)

__all__ = [
    "DeliveryOutcome",
    "parse_bus_message",
    "route_to_client",
    "handle_incoming_message",
]
