"""
Tests for the bus reconnect policy.
"""

import pytest

from sse_gateway.components.resilience import (
    RetryConfig,
    calculate_delay,
    create_redis_retry_config,
    should_retry,
)


class TestCalculateDelay:
    """delay(attempt) = min(attempt * step, max_delay)."""

    @pytest.mark.parametrize(
        "attempt, expected",
        [(1, 0.1), (5, 0.5), (20, 2.0), (50, 2.0)],
    )
    def test_linear_with_cap(self, attempt, expected):
        assert calculate_delay(attempt) == pytest.approx(expected)

    def test_attempt_zero_has_no_delay(self):
        assert calculate_delay(0) == 0.0

    def test_custom_config(self):
        config = RetryConfig(step=0.5, max_delay=1.0, max_attempts=3)
        assert calculate_delay(1, config) == 0.5
        assert calculate_delay(3, config) == 1.0

    def test_delays_never_decrease(self):
        delays = [calculate_delay(n) for n in range(1, 30)]
        assert delays == sorted(delays)


class TestShouldRetry:
    """Bounded number of attempts."""

    def test_allows_up_to_max_attempts(self):
        config = RetryConfig(max_attempts=10)
        assert should_retry(10, config) is True
        assert should_retry(11, config) is False

    def test_default_is_ten_attempts(self):
        assert should_retry(10) is True
        assert should_retry(11) is False


class TestRetryConfig:
    """Configuration validation."""

    def test_factory(self):
        config = create_redis_retry_config(step=0.2, max_delay=4.0, max_attempts=5)
        assert config == RetryConfig(step=0.2, max_delay=4.0, max_attempts=5)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"step": 0},
            {"step": 1.0, "max_delay": 0.5},
            {"max_attempts": 0},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)
