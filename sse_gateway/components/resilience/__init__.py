"""
Resilience: reconnect policy for the broadcast bus.
"""

from sse_gateway.components.resilience.retry import (
    RetryConfig,
    calculate_delay,
    should_retry,
    create_redis_retry_config,
)

__all__ = [
    "RetryConfig",
    "calculate_delay",
    "should_retry",
    "create_redis_retry_config",
]
