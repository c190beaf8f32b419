"""
SSE Gateway test publisher.

Publishes sample events to the broadcast channel so a connected client
can be exercised end to end.

Usage:
    sse-publish STORE001-LANE01 signature
    sse-publish STORE001-LANE01 payment --count 5
    sse-publish STORE001-LANE01 alert --count 10 --interval 1000
"""

from __future__ import annotations

import asyncio
import json
import random
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import redis.asyncio as redis
import typer
from redis.exceptions import RedisError
from rich.console import Console
from rich.table import Table

from shared.config.logging import publisher_logger as logger, setup_logging
from shared.config.settings import Settings, settings as default_settings

app = typer.Typer(
    name="sse-publish",
    help="Publish test events to the SSE Gateway broadcast channel",
    add_completion=False,
)
console = Console()

DEFAULT_INTERVAL_MS = 2000

_ID_ALPHABET = string.ascii_uppercase + string.digits


def random_id(length: int) -> str:
    return "".join(random.choices(_ID_ALPHABET, k=length))


def _amount(low: float, spread: float) -> str:
    return f"{random.random() * spread + low:.2f}"


# =============================================================================
# Action templates
# =============================================================================


@dataclass(frozen=True)
class ActionTemplate:
    """Sample payload generator for one action."""

    description: str
    build_data: Callable[[], dict[str, Any]]


ACTION_TEMPLATES: dict[str, ActionTemplate] = {
    "signature": ActionTemplate(
        "Signature capture request",
        lambda: {
            "transactionId": f"TXN-{random_id(6)}",
            "amount": _amount(10, 500),
            "message": "Please capture signature on the device",
            "timeout": 60,
        },
    ),
    "payment": ActionTemplate(
        "Payment processing",
        lambda: {
            "transactionId": f"TXN-{random_id(6)}",
            "amount": _amount(50, 1000),
            "paymentMethod": random.choice(["credit", "debit", "cash", "mobile"]),
            "status": random.choice(["pending", "processing", "approved"]),
            "cardLast4": f"{random.randrange(10000):04d}",
        },
    ),
    "receipt": ActionTemplate(
        "Receipt generation",
        lambda: {
            "transactionId": f"TXN-{random_id(6)}",
            "amount": _amount(10, 500),
            "items": random.randint(1, 10),
            "receiptNumber": f"RCP-{random_id(8)}",
            "printRequired": random.choice([True, False]),
        },
    ),
    "alert": ActionTemplate(
        "System alert",
        lambda: {
            "severity": random.choice(["info", "warning", "error", "critical"]),
            "message": random.choice([
                "System maintenance scheduled",
                "Network connectivity issue",
                "Low paper warning",
                "Device temperature high",
                "Software update available",
            ]),
            "alertId": f"ALT-{random_id(6)}",
            "requiresAck": random.choice([True, False]),
        },
    ),
    "inventory": ActionTemplate(
        "Inventory update",
        lambda: {
            "sku": f"SKU-{random_id(6)}",
            "quantity": random.randrange(100),
            "location": f"AISLE-{random.randint(1, 20)}",
            "status": random.choice(["in-stock", "low-stock", "out-of-stock"]),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        },
    ),
    "status": ActionTemplate(
        "Device status update",
        lambda: {
            "deviceId": f"DEV-{random_id(4)}",
            "status": random.choice(["online", "offline", "busy", "maintenance"]),
            "uptime": random.randrange(86400),
            "temperature": f"{random.random() * 20 + 30:.1f}",
            "memoryUsage": random.randrange(100),
        },
    ),
    "notification": ActionTemplate(
        "General notification",
        lambda: {
            "title": random.choice([
                "New Order Received",
                "Customer Arrival",
                "Delivery Update",
                "Manager Request",
                "Break Time Reminder",
            ]),
            "message": f"Notification message {random_id(4)}",
            "priority": random.choice(["low", "medium", "high"]),
            "notificationId": f"NOT-{random_id(8)}",
        },
    ),
}


def generate_event(client_name: str, action: str) -> dict[str, Any]:
    """
    Build one bus record for a client.

    Raises:
        ValueError: If the action has no template.
    """
    template = ACTION_TEMPLATES.get(action)
    if template is None:
        raise ValueError(
            f"Unknown action: {action}. Available: {', '.join(ACTION_TEMPLATES)}"
        )

    return {
        "clientName": client_name,
        "action": action,
        "eventId": f"evt-{random_id(8)}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": template.build_data(),
    }


# =============================================================================
# Publishing
# =============================================================================


def create_publisher_client(settings: Settings) -> redis.Redis:
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        decode_responses=True,
        socket_connect_timeout=settings.redis_socket_timeout,
    )


async def publish_events(
    client: redis.Redis,
    channel: str,
    client_name: str,
    action: str,
    count: int = 1,
    interval_ms: int = DEFAULT_INTERVAL_MS,
    on_published: Callable[[dict[str, Any], int], Awaitable[None] | None] | None = None,
) -> list[dict[str, Any]]:
    """
    Publish count events, waiting interval_ms between them.

    Returns:
        The published events, in order.
    """
    published = []
    for i in range(count):
        event = generate_event(client_name, action)
        subscribers = await client.publish(channel, json.dumps(event))
        logger.info(
            "Published event",
            client_name=client_name,
            action=action,
            event_id=event["eventId"],
            subscribers=subscribers,
        )
        published.append(event)
        if on_published is not None:
            result = on_published(event, subscribers)
            if asyncio.iscoroutine(result):
                await result

        if i < count - 1 and interval_ms > 0:
            await asyncio.sleep(interval_ms / 1000)

    return published


def _print_actions() -> None:
    table = Table(title="Available actions")
    table.add_column("Action", style="cyan")
    table.add_column("Description", style="green")
    for name, template in ACTION_TEMPLATES.items():
        table.add_row(name, template.description)
    console.print(table)


@app.command()
def publish(
    client_name: str = typer.Argument(..., help="Target client, e.g. STORE001-LANE01"),
    action: str = typer.Argument(..., help="Action template to publish"),
    count: int = typer.Option(1, "--count", "-c", min=1, help="Number of events"),
    interval: int = typer.Option(
        DEFAULT_INTERVAL_MS, "--interval", "-i", min=0, help="Milliseconds between events"
    ),
):
    """Publish test events for a client."""
    if action not in ACTION_TEMPLATES:
        console.print(f"[red]Error: Unknown action '{action}'[/red]")
        _print_actions()
        raise typer.Exit(1)

    setup_logging()
    settings = default_settings

    console.print(f"[blue]Connecting to Redis at {settings.redis_host}:{settings.redis_port}[/blue]")
    console.print(f"Channel: {settings.redis_channel}")
    console.print(f"Client: {client_name}  Action: {action}  Count: {count}  Interval: {interval}ms")

    async def _show(event: dict[str, Any], subscribers: int) -> None:
        console.print(f"[green]✓ Published event for {client_name} (subscribers: {subscribers})[/green]")
        console.print_json(json.dumps(event))

    async def _publish() -> int:
        client = create_publisher_client(settings)
        try:
            events = await publish_events(
                client,
                settings.redis_channel,
                client_name,
                action,
                count=count,
                interval_ms=interval,
                on_published=_show,
            )
            return len(events)
        finally:
            await client.aclose()

    try:
        published = asyncio.run(_publish())
    except (RedisError, OSError) as e:
        logger.error("Failed to publish", error=str(e))
        console.print(f"[red]✗ Failed to publish: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Successfully published {published} event(s)[/green]")


if __name__ == "__main__":
    app()
