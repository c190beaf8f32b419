"""
Event handling: bus record value object and SSE framing.
"""

from sse_gateway.components.events.types import (
    StreamEvent,
    OPTIONAL_EVENT_FIELDS,
    format_event_frame,
    format_comment_frame,
    format_heartbeat_frame,
    build_connected_event,
)

__all__ = [
    "StreamEvent",
    "OPTIONAL_EVENT_FIELDS",
    "format_event_frame",
    "format_comment_frame",
    "format_heartbeat_frame",
    "build_connected_event",
]
