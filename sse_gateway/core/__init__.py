"""
SSE Gateway Core Module.

- subscriber/: Bus message processing (parsing, local routing)
"""

from sse_gateway.core.subscriber import (
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
