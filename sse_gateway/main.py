"""
SSE Gateway main application.

Streams server-sent events to named clients. Every pod subscribes to the
same Redis channel and delivers each message only if the target client
is connected to it.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from shared.config.logging import gateway_logger as logger, setup_logging
from shared.config.settings import Settings, settings as default_settings
from shared.utils.exceptions import (
    ClientNotFoundError,
    ServiceUnavailableError,
    ValidationError,
)
from sse_gateway.components.connection.transport import QueueTransport
from sse_gateway.components.core.constants import (
    SSE_RESPONSE_HEADERS,
    TARGET_IDENTITY_FIELD,
    is_valid_client_name,
)
from sse_gateway.components.events.types import (
    build_connected_event,
    format_comment_frame,
    format_event_frame,
)
from sse_gateway.connection_registry import ConnectionRegistry
from sse_gateway.message_router import BusConfig, MessageRouter

VERSION = "1.0.0"

INVALID_CLIENT_NAME = (
    f"{TARGET_IDENTITY_FIELD} must contain only alphanumeric characters, "
    "underscores, and hyphens"
)


class RegisterRequest(BaseModel):
    """Body of POST /register."""

    clientName: str | None = None


# =============================================================================
# Dependencies
# =============================================================================


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry


def get_router(request: Request) -> MessageRouter:
    return request.app.state.router


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup connects the message router; a bus that stays unreachable is
    logged and the gateway keeps serving streams. Shutdown closes every
    stream before tearing down the bus connection.
    """
    settings: Settings = app.state.settings
    registry: ConnectionRegistry = app.state.registry
    router: MessageRouter = app.state.router

    setup_logging()

    config_errors = settings.validate_production_settings()
    if config_errors:
        for error in config_errors:
            logger.error("Configuration error", error=error)
        raise RuntimeError(f"Production configuration errors: {'; '.join(config_errors)}")

    logger.info(
        "Starting SSE Gateway",
        port=settings.gateway_port,
        env=settings.environment,
        redis_host=settings.redis_host,
        redis_port=settings.redis_port,
        channel=settings.redis_channel,
    )

    if not await router.connect():
        logger.error("Redis unavailable, serving streams without bus delivery")

    yield

    logger.info("Shutting down SSE Gateway")
    closed = registry.close_all()
    logger.info("Closed SSE connections", count=closed)

    await router.disconnect()
    logger.info("Graceful shutdown completed")


# =============================================================================
# Stream setup
# =============================================================================


def open_event_stream(
    client_name: str,
    registry: ConnectionRegistry,
    buffer_size: int,
) -> StreamingResponse:
    """
    Open an SSE stream for a client and register it.

    The greeting frames are queued before registration, so they always
    precede the first heartbeat and the first routed event.
    """
    transport = QueueTransport(maxsize=buffer_size)
    transport.write(format_comment_frame(f"Connected to {registry.pod_name}"))
    transport.write(format_event_frame(build_connected_event(client_name, registry.pod_name)))

    registry.register(client_name, transport)

    return StreamingResponse(
        transport.stream(),
        media_type="text/event-stream",
        headers=SSE_RESPONSE_HEADERS,
    )


# =============================================================================
# Routes
# =============================================================================


async def register_client(
    body: RegisterRequest,
    registry: ConnectionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    """
    Validate a client name before it opens a stream.

    Nothing is stored; registration happens when the stream connects.
    """
    client_name = body.clientName
    if not client_name:
        raise ValidationError(f"{TARGET_IDENTITY_FIELD} is required")
    if not is_valid_client_name(client_name):
        raise ValidationError(INVALID_CLIENT_NAME, client_name=client_name)

    logger.info(
        "Registration request received, stream not yet open",
        client_name=client_name,
        pod_name=registry.pod_name,
    )
    return {
        "success": True,
        "clientName": client_name,
        "podName": registry.pod_name,
        "message": (
            f"Client {client_name} registered. "
            f"Connect to /events/{client_name} for SSE stream"
        ),
        "timestamp": _now_iso(),
    }


async def stream_events(
    clientName: str,
    registry: ConnectionRegistry = Depends(get_registry),
    settings: Settings = Depends(get_app_settings),
) -> StreamingResponse:
    """Long-lived SSE stream for one client."""
    if not is_valid_client_name(clientName):
        raise ValidationError(INVALID_CLIENT_NAME, client_name=clientName)

    logger.info("New SSE connection request", client_name=clientName)
    return open_event_stream(clientName, registry, settings.sse_transport_buffer_size)


async def health_check(
    request: Request,
    registry: ConnectionRegistry = Depends(get_registry),
    router: MessageRouter = Depends(get_router),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, Any]:
    """Pod statistics. Healthy as long as the process serves HTTP."""
    uptime = int(time.monotonic() - request.app.state.started_at)
    return {
        "status": "healthy",
        "service": "sse-gateway",
        "version": VERSION,
        "podName": registry.pod_name,
        "uptime": uptime,
        "connections": registry.count(),
        "redis": router.get_status(),
        "routing": router.get_metrics(),
        "timestamp": _now_iso(),
        "environment": settings.environment,
    }


async def readiness_check(
    registry: ConnectionRegistry = Depends(get_registry),
    router: MessageRouter = Depends(get_router),
) -> dict[str, Any]:
    """Ready only while subscribed to the bus."""
    if not router.is_connected:
        raise ServiceUnavailableError("Redis", pod_name=registry.pod_name)
    return {"status": "ready", "podName": registry.pod_name}


async def list_connections(
    registry: ConnectionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    connections = registry.enumerate()
    return {
        "podName": registry.pod_name,
        "totalConnections": len(connections),
        "connections": connections,
        "timestamp": _now_iso(),
    }


async def get_client(
    clientName: str,
    registry: ConnectionRegistry = Depends(get_registry),
) -> dict[str, Any]:
    entry = registry.get(clientName)
    if entry is None:
        raise ClientNotFoundError(clientName, pod_name=registry.pod_name)
    return {
        "found": True,
        "podName": registry.pod_name,
        "client": entry.get_stats(),
        "timestamp": _now_iso(),
    }


# =============================================================================
# FastAPI Application
# =============================================================================


def _allowed_origins(settings: Settings) -> list[str]:
    origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    return origins or ["*"]


def create_app(
    registry: ConnectionRegistry | None = None,
    router: MessageRouter | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        registry: Connection registry (default: one built from settings).
        router: Message router bound to the registry
            (default: one built from settings).
        settings: Settings to use (default: module settings).
    """
    settings = settings or default_settings
    registry = registry or ConnectionRegistry(
        pod_name=settings.pod_name,
        heartbeat_interval=settings.sse_heartbeat_interval,
    )
    router = router or MessageRouter(registry, BusConfig.from_settings(settings))

    app = FastAPI(
        title="SSE Gateway",
        description="Server-sent events fan-out over Redis pub/sub",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.router = router
    app.state.started_at = time.monotonic()

    origins = _allowed_origins(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.add_api_route("/register", register_client, methods=["POST"])
    app.add_api_route("/events/{clientName}", stream_events, methods=["GET"])
    app.add_api_route("/health", health_check, methods=["GET"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"])
    app.add_api_route("/admin/connections", list_connections, methods=["GET"])
    app.add_api_route("/admin/client/{clientName}", get_client, methods=["GET"])

    return app


app = create_app()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sse_gateway.main:app",
        host="0.0.0.0",
        port=default_settings.gateway_port,
        reload=default_settings.debug,
    )
