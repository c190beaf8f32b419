"""
Retry Utilities for the SSE Gateway.

Reconnect policy for the broadcast bus: a bounded number of attempts with
a delay that grows linearly with the attempt number up to a ceiling.

    delay(attempt) = min(attempt * step, max_delay)

Every gateway process reconnects on its own schedule; the ceiling keeps a
long Redis outage from stretching delays beyond a couple of seconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from sse_gateway.components.core.constants import SSEConstants


# =============================================================================
# Constants
# =============================================================================


DEFAULT_STEP: Final[float] = SSEConstants.RECONNECT_STEP
DEFAULT_MAX_DELAY: Final[float] = SSEConstants.MAX_RECONNECT_DELAY
DEFAULT_MAX_ATTEMPTS: Final[int] = SSEConstants.MAX_RECONNECT_ATTEMPTS


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """
    Configuration for reconnect behavior.

    Attributes:
        step: Delay added per attempt in seconds (default: 0.1).
        max_delay: Maximum delay cap in seconds (default: 2.0).
        max_attempts: Attempts allowed before giving up (default: 10).
    """

    step: float = DEFAULT_STEP
    max_delay: float = DEFAULT_MAX_DELAY
    max_attempts: int = DEFAULT_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.step <= 0:
            raise ValueError("step must be positive")
        if self.max_delay < self.step:
            raise ValueError("max_delay must be >= step")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


# =============================================================================
# Retry Functions
# =============================================================================


def calculate_delay(attempt: int, config: RetryConfig | None = None) -> float:
    """
    Calculate the delay before a reconnect attempt.

    Args:
        attempt: Attempt number (1-indexed).
        config: Retry configuration (uses defaults if None).

    Returns:
        Delay in seconds.

    Example:
        >>> calculate_delay(1)   # 0.1
        >>> calculate_delay(5)   # 0.5
        >>> calculate_delay(50)  # 2.0 (capped)
    """
    if config is None:
        config = RetryConfig()
    if attempt < 1:
        return 0.0
    return min(attempt * config.step, config.max_delay)


def should_retry(attempt: int, config: RetryConfig | None = None) -> bool:
    """
    Determine if a reconnect attempt is still allowed.

    Args:
        attempt: Attempt number about to be made (1-indexed).
        config: Retry configuration (uses defaults if None).

    Returns:
        True while attempt <= max_attempts.
    """
    if config is None:
        config = RetryConfig()
    return attempt <= config.max_attempts


# =============================================================================
# Factory Functions
# =============================================================================


def create_redis_retry_config(
    step: float = DEFAULT_STEP,
    max_delay: float = DEFAULT_MAX_DELAY,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RetryConfig:
    """
    Create the reconnect config for the Redis subscriber.

    Args:
        step: Delay added per attempt.
        max_delay: Maximum delay between attempts.
        max_attempts: Maximum attempts before giving up.

    Returns:
        RetryConfig for Redis reconnection.
    """
    return RetryConfig(step=step, max_delay=max_delay, max_attempts=max_attempts)
