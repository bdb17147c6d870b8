"""Unit tests for retry policy decisions."""

import pytest
from pydantic import ValidationError

from bbagent.features.transport.models import RetryPolicy


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.initial_backoff_ms == 200
        assert policy.max_backoff_ms == 2000

    def test_frozen(self) -> None:
        """Test that the policy cannot be mutated."""
        policy = RetryPolicy()

        with pytest.raises(ValidationError):
            policy.max_attempts = 5  # type: ignore[misc]

    def test_max_attempts_bounds(self) -> None:
        """Test that zero attempts is rejected."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)


class TestShouldRetry:
    """Tests for the retry budget."""

    def test_three_attempts(self) -> None:
        """Test that three attempts allow two retries."""
        policy = RetryPolicy(max_attempts=3)

        assert policy.should_retry(0) is True
        assert policy.should_retry(1) is True
        assert policy.should_retry(2) is False

    def test_single_attempt(self) -> None:
        """Test that one attempt never retries."""
        assert RetryPolicy(max_attempts=1).should_retry(0) is False


class TestGetDelay:
    """Tests for exponential backoff."""

    def test_exponential_growth(self) -> None:
        """Test that delays double per retry."""
        policy = RetryPolicy(initial_backoff_ms=200, max_backoff_ms=10000)

        assert policy.get_delay_ms(1) == 200
        assert policy.get_delay_ms(2) == 400
        assert policy.get_delay_ms(3) == 800

    def test_capped_at_max(self) -> None:
        """Test that delays never exceed the maximum."""
        policy = RetryPolicy(initial_backoff_ms=1000, max_backoff_ms=1500)

        assert policy.get_delay_ms(2) == 1500
        assert policy.get_delay_ms(8) == 1500
