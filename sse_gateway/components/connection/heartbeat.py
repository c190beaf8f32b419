"""
Heartbeat Timer for SSE connections.

Each connection owns one timer. There is no shared timer wheel: timers
are scheduled on the running event loop with call_later and cancelled
independently when their connection closes.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from shared.config.logging import get_logger
from sse_gateway.components.core.constants import SSEConstants

logger = get_logger(__name__)


class HeartbeatTimer:
    """
    Periodic timer that invokes a tick callback until cancelled.

    The callback runs on the event loop thread. If it raises, the error is
    logged and the on_error hook (if any) is called; the timer then stops.

    Usage:
        timer = HeartbeatTimer(entry.send_heartbeat, interval=30.0)
        timer.start()
        ...
        timer.cancel()
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        interval: float = SSEConstants.HEARTBEAT_INTERVAL,
        on_error: Callable[[BaseException], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Initialize heartbeat timer.

        Args:
            on_tick: Called once per period.
            interval: Seconds between ticks.
            on_error: Called with the exception if on_tick raises.
            loop: Event loop to schedule on (defaults to the running loop).
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._on_tick = on_tick
        self._on_error = on_error
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._ticks = 0

    @property
    def interval(self) -> float:
        """Seconds between ticks."""
        return self._interval

    @property
    def active(self) -> bool:
        """Whether a tick is scheduled."""
        return self._handle is not None and not self._cancelled

    @property
    def ticks(self) -> int:
        """Number of ticks fired so far."""
        return self._ticks

    def start(self) -> None:
        """
        Schedule the first tick.

        Raises:
            RuntimeError: If called outside a running event loop and no
                loop was given.
        """
        if self._cancelled or self._handle is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._schedule()

    def cancel(self) -> bool:
        """
        Stop the timer.

        Returns:
            True if this call cancelled the timer, False if already cancelled.
        """
        if self._cancelled:
            return False
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return True

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._cancelled:
            return
        self._ticks += 1
        try:
            self._on_tick()
        except Exception as e:
            logger.warning(
                "Heartbeat tick raised",
                error=type(e).__name__,
                message=str(e),
            )
            self._cancelled = True
            if self._on_error is not None:
                self._on_error(e)
            return
        # The tick may have cancelled us (connection closed)
        if not self._cancelled:
            self._schedule()
