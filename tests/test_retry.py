"""
Unit tests for the retry controller.

Tests backoff schedule, fatal short-circuit and exhaustion.
"""

import pytest

from metered_llm.core.errors import (
    AuthError,
    RateLimitedByProvider,
    RetriesExhausted,
    TransientNetworkError,
)
from metered_llm.core.retry import RetryController, RetryPolicy


class ScriptedAttempts:
    """Attempt function that raises or returns values from a script."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.attempts = []

    def __call__(self, attempt):
        self.attempts.append(attempt)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class TestRetryPolicy:
    """Test backoff arithmetic and validation."""

    def test_exponential_backoff(self):
        """Delays double: 1s, 2s, 4s for a 1s base."""
        policy = RetryPolicy(max_retries=3, retry_delay_ms=1000)
        assert [policy.backoff_ms(a) for a in (1, 2, 3)] == [1000, 2000, 4000]

    def test_retry_after_hint_used_for_rate_limits(self):
        """Provider rate limits wait for the hinted duration."""
        policy = RetryPolicy()
        error = RateLimitedByProvider("slow down", retry_after=7)
        assert policy.delay_ms(1, error) == 7000

    def test_retry_after_hint_capped(self):
        """Hints longer than a minute are capped."""
        policy = RetryPolicy()
        error = RateLimitedByProvider("slow down", retry_after=3600)
        assert policy.delay_ms(1, error) == 60_000

    def test_hint_ignored_for_other_errors(self):
        """Only rate-limit errors honor the hint."""
        policy = RetryPolicy()
        error = TransientNetworkError("boom", retry_after=7)
        assert policy.delay_ms(2, error) == 2000

    def test_invalid_policy_rejected(self):
        """At least one attempt and a non-negative delay are required."""
        with pytest.raises(ValueError, match="max_retries"):
            RetryPolicy(max_retries=0)
        with pytest.raises(ValueError, match="retry_delay_ms"):
            RetryPolicy(retry_delay_ms=-1)


class TestRetryController:
    """Test the attempt loop."""

    def setup_method(self):
        """Set up a controller that records sleeps instead of sleeping."""
        self.sleeps = []
        self.controller = RetryController(RetryPolicy(max_retries=3, retry_delay_ms=1000), sleep=self.sleeps.append)

    def test_first_attempt_success(self):
        """A success on attempt 1 needs no sleep."""
        attempts = ScriptedAttempts("ok")
        assert self.controller.run(attempts) == "ok"
        assert attempts.attempts == [1]
        assert self.sleeps == []

    def test_succeeds_on_third_attempt(self):
        """Two transient failures wait 1s then 2s before succeeding."""
        attempts = ScriptedAttempts(
            TransientNetworkError("timeout"),
            TransientNetworkError("503", status_code=503),
            "ok"
        )
        assert self.controller.run(attempts) == "ok"
        assert attempts.attempts == [1, 2, 3]
        assert self.sleeps == [1.0, 2.0]
        assert sum(self.sleeps) >= 3.0

    def test_fatal_error_short_circuits(self):
        """A fatal error on attempt 1 stops the loop immediately."""
        attempts = ScriptedAttempts(AuthError("bad key", status_code=401), "unreached")
        with pytest.raises(AuthError):
            self.controller.run(attempts)
        assert attempts.attempts == [1]
        assert self.sleeps == []

    def test_fatal_after_retryable(self):
        """A fatal error after a retry still propagates as itself."""
        attempts = ScriptedAttempts(TransientNetworkError("timeout"), AuthError("quota"))
        with pytest.raises(AuthError):
            self.controller.run(attempts)
        assert self.sleeps == [1.0]

    def test_exhaustion_wraps_last_error(self):
        """Three retryable failures raise RetriesExhausted with the last cause."""
        last = TransientNetworkError("third")
        attempts = ScriptedAttempts(
            TransientNetworkError("first"),
            TransientNetworkError("second"),
            last
        )
        with pytest.raises(RetriesExhausted) as exc_info:
            self.controller.run(attempts)

        assert exc_info.value.last_error is last
        assert exc_info.value.attempts == 3
        # No sleep after the final attempt
        assert self.sleeps == [1.0, 2.0]

    def test_single_attempt_policy(self):
        """max_retries=1 makes exactly one attempt and never sleeps."""
        controller = RetryController(RetryPolicy(max_retries=1), sleep=self.sleeps.append)
        with pytest.raises(RetriesExhausted):
            controller.run(ScriptedAttempts(TransientNetworkError("once")))
        assert self.sleeps == []
