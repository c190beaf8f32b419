"""
Redis pub/sub message router for the SSE gateway.

Subscribes to one broadcast channel and hands every message to the
local ConnectionRegistry. Each gateway process receives every message
and delivers only to clients it holds.

Bus connectivity never affects local connections: while the router is
disconnected, registered clients stay registered and are only closed by
their own heartbeat or write failures.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import redis.asyncio as redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from shared.config.logging import get_logger
from shared.config.settings import Settings, settings as default_settings
from sse_gateway.components.core.constants import SSEConstants
from sse_gateway.components.core.errors import BusNotConnectedError
from sse_gateway.components.metrics.collector import MetricsCollector
from sse_gateway.components.resilience.retry import (
    RetryConfig,
    calculate_delay,
    create_redis_retry_config,
    should_retry,
)
from sse_gateway.core.subscriber import DeliveryOutcome, handle_incoming_message

if TYPE_CHECKING:
    from redis.asyncio.client import PubSub
    from sse_gateway.connection_registry import ConnectionRegistry

logger = get_logger(__name__)

# Errors that mean the bus connection is unusable
BUS_CONNECTION_ERRORS: tuple[type[BaseException], ...] = (
    RedisConnectionError,
    OSError,
)


@dataclass(frozen=True, slots=True)
class BusConfig:
    """Where the broadcast bus lives and how to reconnect to it."""

    host: str = "localhost"
    port: int = 6379
    channel: str = "events-to-store"
    pod_name: str = "local-pod"
    max_reconnect_attempts: int = SSEConstants.MAX_RECONNECT_ATTEMPTS
    reconnect_step: float = SSEConstants.RECONNECT_STEP
    max_reconnect_delay: float = SSEConstants.MAX_RECONNECT_DELAY
    socket_timeout: float = 5.0
    cleanup_timeout: float = SSEConstants.PUBSUB_CLEANUP_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "BusConfig":
        settings = settings or default_settings
        return cls(
            host=settings.redis_host,
            port=settings.redis_port,
            channel=settings.redis_channel,
            pod_name=settings.pod_name,
            max_reconnect_attempts=settings.redis_max_reconnect_attempts,
            reconnect_step=settings.redis_reconnect_step,
            max_reconnect_delay=settings.redis_max_reconnect_delay,
            socket_timeout=settings.redis_socket_timeout,
            cleanup_timeout=settings.redis_pubsub_cleanup_timeout,
        )

    @property
    def retry_config(self) -> RetryConfig:
        return create_redis_retry_config(
            step=self.reconnect_step,
            max_delay=self.max_reconnect_delay,
            max_attempts=self.max_reconnect_attempts,
        )


def create_redis_client(config: BusConfig) -> redis.Redis:
    """Build the async Redis client used for subscribing and publishing."""
    return redis.Redis(
        host=config.host,
        port=config.port,
        decode_responses=True,
        socket_connect_timeout=config.socket_timeout,
        health_check_interval=30,
    )


class MessageRouter:
    """
    Routes broadcast-bus messages to locally held SSE connections.

    Reconnect policy: up to max_reconnect_attempts attempts, waiting
    min(attempt * reconnect_step, max_reconnect_delay) before each one.
    Past the cap the router gives up and stays disconnected.

    Usage:
        registry = ConnectionRegistry()
        router = MessageRouter(registry, BusConfig.from_settings())
        await router.connect()
        ...
        registry.close_all()
        await router.disconnect()
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        config: BusConfig | None = None,
        redis_factory: Callable[[BusConfig], redis.Redis] = create_redis_client,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._registry = registry
        self._config = config or BusConfig.from_settings()
        self._retry_config = self._config.retry_config
        self._redis_factory = redis_factory
        self._metrics = metrics or MetricsCollector()

        self._client: redis.Redis | None = None
        self._pubsub: "PubSub | None" = None
        self._listener_task: asyncio.Task | None = None
        self._connected = False
        self._reconnect_attempts = 0
        self._closing = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def config(self) -> BusConfig:
        return self._config

    # =========================================================================
    # Connection management
    # =========================================================================

    async def connect(self) -> bool:
        """
        Connect, subscribe and start listening.

        If the first attempt fails, the reconnect policy is applied before
        giving up. Never raises.

        Returns:
            True if subscribed, False if the router gave up.
        """
        if self._listener_task is not None and not self._listener_task.done():
            return self._connected

        self._closing = False
        logger.info(
            "Connecting to Redis",
            host=self._config.host,
            port=self._config.port,
            channel=self._config.channel,
        )

        try:
            await self._open()
        except BUS_CONNECTION_ERRORS + (RedisError,) as e:
            logger.warning("Failed to connect to Redis", error=str(e))
            self._connected = False
            if not await self._reconnect():
                return False

        self._listener_task = asyncio.create_task(self._listen(), name="redis_message_router")
        return True

    async def _open(self) -> None:
        """Create a client and pubsub and subscribe to the channel."""
        client = self._redis_factory(self._config)
        pubsub = client.pubsub()
        try:
            await pubsub.subscribe(self._config.channel)
        except BaseException:
            await self._close_quietly(pubsub, client)
            raise

        self._client = client
        self._pubsub = pubsub
        self._connected = True
        self._reconnect_attempts = 0
        logger.info("Subscribed to channel", channel=self._config.channel)

    async def _reconnect(self) -> bool:
        """
        Reconnect under the retry policy.

        Returns:
            True once reconnected, False if attempts are exhausted or the
            router is shutting down.
        """
        await self._discard_connection()

        while not self._closing:
            attempt = self._reconnect_attempts + 1
            if not should_retry(attempt, self._retry_config):
                logger.error(
                    "Max reconnection attempts reached, staying disconnected",
                    attempts=self._reconnect_attempts,
                    max_attempts=self._retry_config.max_attempts,
                )
                self._connected = False
                return False

            self._reconnect_attempts = attempt
            delay = calculate_delay(attempt, self._retry_config)
            logger.warning(
                "Reconnecting to Redis",
                attempt=attempt,
                max_attempts=self._retry_config.max_attempts,
                delay=round(delay, 2),
            )
            await asyncio.sleep(delay)

            try:
                await self._open()
            except BUS_CONNECTION_ERRORS + (RedisError,) as e:
                logger.warning("Reconnect attempt failed", attempt=attempt, error=str(e))
                continue

            logger.info("Redis subscriber reconnected", channel=self._config.channel)
            return True

        return False

    async def _listen(self) -> None:
        """Read messages until cancelled or until reconnection gives up."""
        try:
            while not self._closing:
                try:
                    msg = await self._pubsub.get_message(
                        ignore_subscribe_messages=True,
                        timeout=SSEConstants.GET_MESSAGE_TIMEOUT,
                    )
                except RedisTimeoutError:
                    # Normal for pubsub - continue listening
                    continue
                except BUS_CONNECTION_ERRORS as e:
                    self._connected = False
                    logger.warning("Redis connection lost", error=str(e))
                    if not await self._reconnect():
                        return
                    continue
                except Exception as e:
                    logger.error("Error reading from Redis", error=str(e), exc_info=True)
                    await asyncio.sleep(SSEConstants.GET_MESSAGE_TIMEOUT)
                    continue

                if msg is None:
                    continue
                if msg.get("type") not in ("message", "pmessage"):
                    continue

                try:
                    self.handle_message(msg.get("channel"), msg.get("data"))
                except Exception as e:
                    logger.error("Error dispatching message", error=str(e), exc_info=True)
        except asyncio.CancelledError:
            logger.info("Redis listener cancelled")
            raise
        finally:
            # No listener means nothing is being read
            self._connected = False

    def handle_message(self, channel: str | None, message: str | bytes) -> DeliveryOutcome:
        """Parse one bus message and deliver it locally. Never raises."""
        return handle_incoming_message(channel, message, self._registry, self._metrics)

    # =========================================================================
    # Publishing (test tooling)
    # =========================================================================

    async def publish(self, message: str | dict[str, Any]) -> int:
        """
        Publish a message to the channel.

        Raises:
            BusNotConnectedError: If the router is not connected.

        Returns:
            Number of subscribers that received the message.
        """
        if not self._connected or self._client is None:
            raise BusNotConnectedError()

        payload = message if isinstance(message, str) else json.dumps(message)
        receivers = await self._client.publish(self._config.channel, payload)
        logger.info(
            "Published message",
            channel=self._config.channel,
            subscribers=receivers,
        )
        return receivers

    # =========================================================================
    # Status
    # =========================================================================

    def get_status(self) -> dict[str, Any]:
        return {
            "connected": self._connected,
            "channel": self._config.channel,
            "host": self._config.host,
            "port": self._config.port,
            "reconnectAttempts": self._reconnect_attempts,
        }

    def get_metrics(self) -> dict[str, Any]:
        """Routing counters for monitoring."""
        return self._metrics.get_snapshot()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def disconnect(self) -> None:
        """Stop listening and close the bus connection. Idempotent."""
        self._closing = True

        task, self._listener_task = self._listener_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._pubsub is not None or self._client is not None:
            logger.info("Disconnecting from Redis")
            await self._discard_connection(unsubscribe=True)

        self._connected = False

    async def _discard_connection(self, unsubscribe: bool = False) -> None:
        pubsub, client = self._pubsub, self._client
        self._pubsub = None
        self._client = None

        if pubsub is not None and unsubscribe:
            try:
                await asyncio.wait_for(
                    pubsub.unsubscribe(self._config.channel),
                    timeout=self._config.cleanup_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Pubsub unsubscribe timed out", timeout=self._config.cleanup_timeout)
            except Exception as e:
                logger.warning("Error during pubsub cleanup", error=str(e))

        await self._close_quietly(pubsub, client)

    async def _close_quietly(self, pubsub: "PubSub | None", client: redis.Redis | None) -> None:
        for resource in (pubsub, client):
            if resource is None:
                continue
            try:
                await asyncio.wait_for(resource.aclose(), timeout=self._config.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Redis close timed out", timeout=self._config.cleanup_timeout)
            except Exception as e:
                logger.debug("Error closing Redis resource", error=str(e))
