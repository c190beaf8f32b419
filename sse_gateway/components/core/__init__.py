"""
Core components: constants, states and the error taxonomy.
"""

from sse_gateway.components.core.constants import (
    ConnectionState,
    CloseReason,
    SSEConstants,
    SSE_RESPONSE_HEADERS,
    CLIENT_NAME_PATTERN,
    TARGET_IDENTITY_FIELD,
    is_valid_client_name,
)
from sse_gateway.components.core.errors import (
    GatewayError,
    TransportError,
    ProtocolError,
    BusConnectivityError,
    BusNotConnectedError,
)

__all__ = [
    "ConnectionState",
    "CloseReason",
    "SSEConstants",
    "SSE_RESPONSE_HEADERS",
    "CLIENT_NAME_PATTERN",
    "TARGET_IDENTITY_FIELD",
    "is_valid_client_name",
    "GatewayError",
    "TransportError",
    "ProtocolError",
    "BusConnectivityError",
    "BusNotConnectedError",
]
