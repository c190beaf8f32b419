"""
Connection components: transport, heartbeat timer and the per-client entry.
"""

from sse_gateway.components.connection.transport import QueueTransport, StreamTransport
from sse_gateway.components.connection.heartbeat import HeartbeatTimer
from sse_gateway.components.connection.entry import ConnectionEntry

__all__ = [
    "QueueTransport",
    "StreamTransport",
    "HeartbeatTimer",
    "ConnectionEntry",
]
