"""
Event Value Objects for the SSE Gateway.

Domain object for records arriving on the broadcast bus, with
validation at construction time and helpers to frame them for SSE.
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Self

from sse_gateway.components.core.constants import SSEConstants, TARGET_IDENTITY_FIELD
from sse_gateway.components.core.errors import ProtocolError

# Optional event fields, passed through to the client unchanged:
#   action    - Application action name (signature, payment, alert, ...)
#   eventId   - Publisher-assigned identifier for tracing
#   timestamp - ISO 8601 publish time
#   data      - Opaque payload
OPTIONAL_EVENT_FIELDS: frozenset[str] = frozenset({"action", "eventId", "timestamp", "data"})


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """
    Immutable Value Object representing an inbound bus record.

    Only the target identity is required. Unknown fields are kept in
    raw_data so the client receives exactly what was published.

    Attributes:
        client_name: Target identity; which client the record is for.
        action: Optional action name.
        event_id: Optional publisher-assigned id.
        timestamp: Optional ISO 8601 timestamp.
        data: Optional opaque payload.
        raw_data: Original record for delivery.
    """

    client_name: str
    action: str | None = None
    event_id: str | None = None
    timestamp: str | None = None
    data: Any = None
    raw_data: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Any) -> Self:
        """
        Create a StreamEvent from a decoded record.

        Raises:
            ProtocolError: If the record is not an object or has no usable
                target identity.
        """
        if not isinstance(data, dict):
            raise ProtocolError(f"Event must be a JSON object, got {type(data).__name__}")

        client_name = data.get(TARGET_IDENTITY_FIELD)
        if client_name is None:
            raise ProtocolError(f"Invalid message: missing {TARGET_IDENTITY_FIELD}")
        if not isinstance(client_name, str) or not client_name.strip():
            raise ProtocolError(f"Invalid message: {TARGET_IDENTITY_FIELD} must be a non-empty string")

        action = data.get("action")
        event_id = data.get("eventId")
        timestamp = data.get("timestamp")

        try:
            raw_data = copy.deepcopy(data)
        except RecursionError as e:
            raise ProtocolError("Invalid message: record is nested too deeply") from e

        return cls(
            client_name=client_name,
            action=action if isinstance(action, str) else None,
            event_id=event_id if isinstance(event_id, str) else None,
            timestamp=timestamp if isinstance(timestamp, str) else None,
            data=raw_data.get("data"),
            raw_data=raw_data,
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> Self:
        """
        Parse a raw bus message.

        Raises:
            ProtocolError: On invalid JSON or an invalid record.
        """
        try:
            decoded = json.loads(raw)
        except (ValueError, TypeError, RecursionError) as e:
            raise ProtocolError(f"Invalid JSON: {e}", raw=raw) from e
        try:
            return cls.from_dict(decoded)
        except ProtocolError as e:
            e.raw = raw
            raise

    def to_dict(self) -> dict[str, Any]:
        """Return a mutable copy of the record as published."""
        return copy.deepcopy(self.raw_data)

    @property
    def label(self) -> str:
        """Short description for log lines."""
        return self.action or "event"


# =============================================================================
# SSE framing
# =============================================================================


def format_event_frame(payload: Any) -> str:
    """
    Serialize a payload as an SSE data frame.

    StreamEvent instances are sent as their original record.

    Raises:
        TypeError/ValueError: If the payload is not JSON serializable.
    """
    if isinstance(payload, StreamEvent):
        payload = payload.raw_data
    return SSEConstants.EVENT_FRAME_TEMPLATE.format(payload=json.dumps(payload))


def format_comment_frame(comment: str) -> str:
    """Build an SSE comment frame; EventSource consumers ignore these."""
    return SSEConstants.COMMENT_FRAME_TEMPLATE.format(comment=comment)


def format_heartbeat_frame(now: datetime | None = None) -> str:
    """Build the inert keepalive frame written by the heartbeat timer."""
    now = now or datetime.now(timezone.utc)
    return format_comment_frame(f"{SSEConstants.HEARTBEAT_COMMENT_PREFIX} {now.isoformat()}")


def build_connected_event(client_name: str, pod_name: str) -> dict[str, Any]:
    """Greeting event written when a stream opens."""
    return {
        "type": "connected",
        "clientName": client_name,
        "podName": pod_name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "SSE connection established",
    }
