"""
Tests for HeartbeatTimer.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from sse_gateway.components.connection.heartbeat import HeartbeatTimer


class TestHeartbeatTimer:
    """Periodic ticks on the running loop."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            HeartbeatTimer(MagicMock(), interval=0)

    def test_start_outside_loop_raises(self):
        timer = HeartbeatTimer(MagicMock(), interval=1.0)
        with pytest.raises(RuntimeError):
            timer.start()

    @pytest.mark.asyncio
    async def test_ticks_repeatedly(self):
        on_tick = MagicMock()
        timer = HeartbeatTimer(on_tick, interval=0.01)
        timer.start()

        await asyncio.sleep(0.055)
        timer.cancel()

        assert on_tick.call_count >= 2
        assert timer.ticks == on_tick.call_count

    @pytest.mark.asyncio
    async def test_tick_return_value_is_ignored(self):
        """send_heartbeat-style callbacks return a bool; either value keeps the timer going."""
        on_tick = MagicMock(side_effect=[False, True, False, True, False, True])
        timer = HeartbeatTimer(on_tick, interval=0.01)
        timer.start()

        await asyncio.sleep(0.035)

        assert timer.active
        assert on_tick.call_count >= 2
        timer.cancel()

    @pytest.mark.asyncio
    async def test_cancel_stops_ticks(self):
        on_tick = MagicMock()
        timer = HeartbeatTimer(on_tick, interval=0.01)
        timer.start()

        assert timer.cancel() is True
        assert timer.cancel() is False
        await asyncio.sleep(0.03)

        on_tick.assert_not_called()
        assert not timer.active

    @pytest.mark.asyncio
    async def test_start_twice_schedules_once(self):
        on_tick = MagicMock()
        timer = HeartbeatTimer(on_tick, interval=0.02)
        timer.start()
        timer.start()

        await asyncio.sleep(0.03)
        timer.cancel()

        on_tick.assert_called_once()

    @pytest.mark.asyncio
    async def test_raising_tick_stops_timer_and_reports(self):
        error = OSError("write failed")
        on_tick = MagicMock(side_effect=error)
        on_error = MagicMock()
        timer = HeartbeatTimer(on_tick, interval=0.01, on_error=on_error)
        timer.start()

        await asyncio.sleep(0.05)

        on_tick.assert_called_once()
        on_error.assert_called_once_with(error)
        assert not timer.active

    @pytest.mark.asyncio
    async def test_tick_that_cancels_is_not_rescheduled(self):
        timer = None

        def on_tick():
            timer.cancel()

        timer = HeartbeatTimer(on_tick, interval=0.01)
        timer.start()
        await asyncio.sleep(0.05)

        assert timer.ticks == 1
        assert not timer.active
