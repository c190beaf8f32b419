"""
Gateway error taxonomy.

Every fault in the gateway is scoped to one connection or one message.
None of these exceptions is allowed to reach the event loop:

- TransportError: terminal for the affected connection, swallowed by close().
- ProtocolError: the offending bus record is logged and dropped.
- BusConnectivityError: handled by the router's reconnect policy.

A duplicate registration is not an error; it evicts the previous entry.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for gateway errors."""


class TransportError(GatewayError):
    """Writing to or closing a client stream failed."""

    def __init__(self, client_name: str | None, message: str) -> None:
        self.client_name = client_name
        super().__init__(f"{client_name or '<unbound>'}: {message}")


class ProtocolError(GatewayError):
    """An inbound bus record could not be parsed or is missing its target."""

    def __init__(self, message: str, raw: str | bytes | None = None) -> None:
        self.raw = raw
        super().__init__(message)


class BusConnectivityError(GatewayError):
    """The broadcast bus (Redis) is unreachable."""


class BusNotConnectedError(BusConnectivityError):
    """An operation needs a live bus connection but the router is disconnected."""

    def __init__(self, message: str = "Redis not connected") -> None:
        super().__init__(message)
