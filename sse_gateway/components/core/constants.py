"""
SSE Gateway Constants.

Centralized constants with documentation explaining each value.
Runtime values that operators tune live in shared.config.settings;
the values here are defaults and wire-format details.
"""

import re
from enum import Enum
from typing import Final

__all__ = [
    "ConnectionState",
    "CloseReason",
    "SSEConstants",
    "SSE_RESPONSE_HEADERS",
    "CLIENT_NAME_PATTERN",
    "TARGET_IDENTITY_FIELD",
    "is_valid_client_name",
]


class ConnectionState(str, Enum):
    """
    Lifecycle state of a streaming connection.

    ALIVE is the only initial state and CLOSED is terminal. There is no
    way back from CLOSED; a reconnecting client gets a new entry.
    """

    ALIVE = "alive"
    CLOSED = "closed"


class CloseReason(str, Enum):
    """Which trigger moved a connection to CLOSED. The first trigger wins."""

    TRANSPORT_DISCONNECT = "transport_disconnect"
    HEARTBEAT_FAILED = "heartbeat_failed"
    WRITE_FAILED = "write_failed"
    EVICTED = "evicted"
    SHUTDOWN = "shutdown"


class SSEConstants:
    """
    SSE Gateway operational constants.

    These are defaults used when settings are not passed explicitly.
    At runtime the registry and router read from
    `shared.config.settings.settings`, which can override them via
    environment variables.
    """

    # ==========================================================================
    # Heartbeat Constants
    # ==========================================================================

    # HEARTBEAT_INTERVAL: 30 seconds
    # Proxies and load balancers commonly drop idle HTTP streams after 60s.
    # A comment frame every 30s keeps the stream warm and surfaces a dead
    # socket within one period.
    HEARTBEAT_INTERVAL: Final[float] = 30.0

    # ==========================================================================
    # Transport Constants
    # ==========================================================================

    # TRANSPORT_BUFFER_SIZE: 100 frames
    # A healthy consumer drains frames as fast as they are produced. A client
    # 100 frames behind is treated as broken and the next write is refused.
    TRANSPORT_BUFFER_SIZE: Final[int] = 100

    # ==========================================================================
    # Bus Reconnection Constants
    # ==========================================================================

    # Delay before reconnect attempt N is min(N * RECONNECT_STEP, MAX_RECONNECT_DELAY).
    # 10 attempts at these values cover roughly 15 seconds of outage.
    MAX_RECONNECT_ATTEMPTS: Final[int] = 10
    RECONNECT_STEP: Final[float] = 0.1
    MAX_RECONNECT_DELAY: Final[float] = 2.0

    # GET_MESSAGE_TIMEOUT: 1 second
    # Upper bound on a single pubsub read so the listener notices
    # cancellation promptly during shutdown.
    GET_MESSAGE_TIMEOUT: Final[float] = 1.0

    # PUBSUB_CLEANUP_TIMEOUT: 5 seconds
    # Unsubscribe/close during shutdown must not hang the process.
    PUBSUB_CLEANUP_TIMEOUT: Final[float] = 5.0

    # ==========================================================================
    # Wire Format
    # ==========================================================================

    EVENT_FRAME_TEMPLATE: Final[str] = "data: {payload}\n\n"
    COMMENT_FRAME_TEMPLATE: Final[str] = ": {comment}\n\n"
    HEARTBEAT_COMMENT_PREFIX: Final[str] = "heartbeat"


# Response headers for text/event-stream endpoints
SSE_RESPONSE_HEADERS: Final[dict[str, str]] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

# Client names are used in URLs and log lines
CLIENT_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-zA-Z0-9_-]+$")

# Field of an inbound bus record that names the target client
TARGET_IDENTITY_FIELD: Final[str] = "clientName"


def is_valid_client_name(client_name: str | None) -> bool:
    """Check that a client name is non-empty and URL/log safe."""
    return bool(client_name) and CLIENT_NAME_PATTERN.match(client_name) is not None
