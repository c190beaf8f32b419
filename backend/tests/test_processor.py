"""
Tests for bus message processing and local routing.

Tests verify:
- Records for clients held elsewhere cause no registry mutation
- Malformed records are dropped without raising
- Failed deliveries close the target and are not retried
"""

import json
from unittest.mock import MagicMock

import pytest

from sse_gateway.components.metrics import MetricsCollector
from sse_gateway.core.subscriber import (
    DeliveryOutcome,
    handle_incoming_message,
    parse_bus_message,
    route_to_client,
)


def record(client_name, action="x", **extra):
    return json.dumps({"clientName": client_name, "action": action, **extra})


class TestRouting:
    """Local delivery decisions."""

    @pytest.mark.asyncio
    async def test_delivers_to_local_client(self, registry, transport):
        registry.register("A", transport)
        metrics = MetricsCollector()

        outcome = handle_incoming_message("events", record("A", "payment"), registry, metrics)

        assert outcome is DeliveryOutcome.DELIVERED
        # Greeting frames are written by the HTTP layer, so only the event is here
        assert transport.data_frames() == [{"clientName": "A", "action": "payment"}]
        assert registry.get("A").event_count == 1
        assert metrics.get_snapshot()["delivered"] == 1

    @pytest.mark.asyncio
    async def test_absent_target_causes_no_mutation(self, registry, transport):
        """Deliver for "B" when only "A" is registered: no fault, count unchanged."""
        entry = registry.register("A", transport)
        before = registry.enumerate()
        metrics = MetricsCollector()

        outcome = handle_incoming_message("events", record("B"), registry, metrics)

        assert outcome is DeliveryOutcome.NOT_LOCAL
        assert registry.count() == 1
        assert registry.get("A") is entry
        assert registry.enumerate() == before
        assert transport.frames == []
        assert metrics.get_snapshot()["not_local"] == 1

    def test_absent_target_on_empty_registry(self, registry):
        outcome = handle_incoming_message("events", record("B"), registry)
        assert outcome is DeliveryOutcome.NOT_LOCAL
        assert registry.count() == 0

    @pytest.mark.asyncio
    async def test_failed_write_closes_target(self, registry, transport):
        entry = registry.register("A", transport)
        transport.refuse_writes = True
        metrics = MetricsCollector()

        outcome = handle_incoming_message("events", record("A"), registry, metrics)

        assert outcome is DeliveryOutcome.FAILED
        assert not entry.is_alive
        assert registry.get("A") is None
        assert metrics.get_snapshot()["failed"] == 1

    @pytest.mark.asyncio
    async def test_delivery_is_not_retried(self, registry, make_transport):
        transport = make_transport()
        transport.raise_on_write = BrokenPipeError()
        registry.register("A", transport)

        handle_incoming_message("events", record("A"), registry)
        handle_incoming_message("events", record("A"), registry)

        assert transport.frames == []
        assert registry.count() == 0

    def test_route_to_client_with_parsed_event(self, registry):
        event = parse_bus_message(record("nobody"))
        assert route_to_client(event, registry) is DeliveryOutcome.NOT_LOCAL


class TestInvalidMessages:
    """Malformed input never raises."""

    @pytest.mark.parametrize(
        "raw",
        ["{not json", "[]", '{"action": "x"}', '{"clientName": ""}', b"\xff\xfe"],
    )
    def test_invalid_messages_are_dropped(self, registry, raw):
        metrics = MetricsCollector()

        outcome = handle_incoming_message("events", raw, registry, metrics)

        assert outcome is DeliveryOutcome.INVALID
        snapshot = metrics.get_snapshot()
        assert snapshot["received"] == 1
        assert snapshot["invalid"] == 1

    def test_deeply_nested_message_is_dropped(self, registry):
        metrics = MetricsCollector()
        raw = "[" * 100000 + "]" * 100000

        outcome = handle_incoming_message("events", raw, registry, metrics)

        assert outcome is DeliveryOutcome.INVALID
        assert metrics.get_snapshot()["invalid"] == 1

    def test_unexpected_error_is_contained(self):
        registry = MagicMock()
        registry.get.side_effect = RuntimeError("registry exploded")

        outcome = handle_incoming_message("events", record("A"), registry)

        assert outcome is DeliveryOutcome.FAILED
