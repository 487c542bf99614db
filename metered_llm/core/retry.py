"""
Retry with exponential backoff.

Runs an attempt function up to a fixed number of times. Fatal errors
propagate at once; retryable ones back off 1x, 2x, 4x... the base delay.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .errors import ErrorKind, LLMClientError, RetriesExhausted

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Upper bound on a provider-supplied Retry-After hint
MAX_RETRY_AFTER_MS = 60_000


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts to make and how long to wait between them."""
    max_retries: int = 3
    retry_delay_ms: int = 1000

    def __post_init__(self):
        """Validate retry settings."""
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms must be >= 0")

    def backoff_ms(self, attempt: int) -> int:
        """Delay after a failed attempt (1-based): delay * 2^(attempt-1)."""
        return self.retry_delay_ms * (2 ** (attempt - 1))

    def delay_ms(self, attempt: int, error: LLMClientError) -> int:
        """Delay before the next attempt, honoring a provider hint if present."""
        if error.kind is ErrorKind.RATE_LIMITED and error.retry_after is not None:
            return int(min(error.retry_after * 1000, MAX_RETRY_AFTER_MS))
        return self.backoff_ms(attempt)


class RetryController:
    """Drives the attempt loop for one call.

    The sleep function runs while no shared state is locked; callers keep
    their locks inside the attempt function.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.policy = policy
        self._sleep = sleep

    def run(self, attempt_fn: Callable[[int], T]) -> T:
        """Call attempt_fn(attempt) until it succeeds or retrying stops.

        Args:
            attempt_fn: Performs one attempt; raises LLMClientError on failure

        Returns:
            The first successful result

        Raises:
            LLMClientError: The fatal error that stopped the loop
            RetriesExhausted: When every attempt failed with a retryable error
        """
        max_retries = self.policy.max_retries
        last_error: Optional[LLMClientError] = None

        for attempt in range(1, max_retries + 1):
            try:
                return attempt_fn(attempt)
            except LLMClientError as error:
                last_error = error

                if not error.retryable:
                    logger.error(
                        f"Non-retryable {error.kind.value} error on attempt "
                        f"{attempt}/{max_retries}, aborting: {error}"
                    )
                    raise

                if attempt < max_retries:
                    delay_ms = self.policy.delay_ms(attempt, error)
                    logger.info(f"Retrying in {delay_ms}ms (attempt {attempt}/{max_retries} failed)")
                    self._sleep(delay_ms / 1000)

        logger.error(f"All {max_retries} attempts failed: {last_error}")
        raise RetriesExhausted(last_error, max_retries) from last_error
