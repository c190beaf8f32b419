"""
Tests for the sse-publish CLI.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from typer.testing import CliRunner

from sse_gateway.components.events import StreamEvent
from sse_gateway.publisher import ACTION_TEMPLATES, app, generate_event, publish_events

runner = CliRunner()


@pytest.fixture
def publisher_client():
    client = MagicMock()
    client.publish = AsyncMock(return_value=2)
    client.aclose = AsyncMock()
    with patch("sse_gateway.publisher.create_publisher_client", return_value=client):
        yield client


class TestGenerateEvent:
    """Sample record generation."""

    @pytest.mark.parametrize("action", sorted(ACTION_TEMPLATES))
    def test_every_template_builds_a_routable_record(self, action):
        event = generate_event("STORE001-LANE01", action)

        parsed = StreamEvent.from_dict(event)
        assert parsed.client_name == "STORE001-LANE01"
        assert parsed.action == action
        assert event["eventId"].startswith("evt-")
        assert isinstance(event["data"], dict)
        json.dumps(event)

    def test_unknown_action(self):
        with pytest.raises(ValueError, match="Unknown action: bogus"):
            generate_event("A", "bogus")

    def test_available_actions(self):
        assert set(ACTION_TEMPLATES) == {
            "signature", "payment", "receipt", "alert", "inventory", "status", "notification",
        }


class TestPublishEvents:
    """Async publishing loop."""

    @pytest.mark.asyncio
    async def test_publishes_count_events(self):
        client = MagicMock()
        client.publish = AsyncMock(return_value=1)
        seen = []

        events = await publish_events(
            client, "events-test", "A", "alert", count=3, interval_ms=0,
            on_published=lambda event, subscribers: seen.append(subscribers),
        )

        assert len(events) == 3
        assert client.publish.await_count == 3
        channel, payload = client.publish.await_args_list[0].args
        assert channel == "events-test"
        assert json.loads(payload) == events[0]
        assert seen == [1, 1, 1]


class TestPublishCommand:
    """CLI behavior."""

    def test_publish_single_event(self, publisher_client):
        result = runner.invoke(app, ["STORE001-LANE01", "signature"])

        assert result.exit_code == 0, result.output
        assert publisher_client.publish.await_count == 1
        payload = json.loads(publisher_client.publish.await_args.args[1])
        assert payload["clientName"] == "STORE001-LANE01"
        assert payload["action"] == "signature"
        publisher_client.aclose.assert_awaited_once()
        assert "Successfully published 1 event(s)" in result.output

    def test_publish_count(self, publisher_client):
        result = runner.invoke(app, ["A", "payment", "--count", "3", "--interval", "0"])

        assert result.exit_code == 0, result.output
        assert publisher_client.publish.await_count == 3

    def test_unknown_action_exits_1(self, publisher_client):
        result = runner.invoke(app, ["A", "bogus"])

        assert result.exit_code == 1
        assert "Unknown action 'bogus'" in result.output
        assert "signature" in result.output
        publisher_client.publish.assert_not_awaited()

    def test_redis_failure_exits_1(self, publisher_client):
        publisher_client.publish.side_effect = RedisConnectionError("refused")

        result = runner.invoke(app, ["A", "alert"])

        assert result.exit_code == 1
        assert "Failed to publish" in result.output
        publisher_client.aclose.assert_awaited_once()
