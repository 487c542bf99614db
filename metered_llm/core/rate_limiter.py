"""
Local request rate limiting.

Fixed-window counter: the count resets once per window rather than
sliding. Across a window boundary up to twice the nominal rate can be
admitted (a full window just before the reset, another just after).
That burst is a known limitation; the limiter guards against gross quota
overruns, not an exact per-minute guarantee.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_PER_MINUTE = 50
WINDOW_MS = 60_000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass(frozen=True)
class Admission:
    """Outcome of a rate check."""
    allowed: bool
    wait_ms: int = 0


class FixedWindowRateLimiter:
    """Admits at most `max_per_minute` calls per fixed window.

    Denied calls do not consume a slot.
    """

    def __init__(
        self,
        max_per_minute: int = DEFAULT_MAX_PER_MINUTE,
        window_ms: int = WINDOW_MS,
        clock: Callable[[], float] = _monotonic_ms
    ):
        """Initialize the limiter.

        Args:
            max_per_minute: Calls admitted per window
            window_ms: Window length in milliseconds
            clock: Millisecond clock, injectable for tests
        """
        if max_per_minute <= 0:
            raise ValueError("max_per_minute must be > 0")
        if window_ms <= 0:
            raise ValueError("window_ms must be > 0")

        self.max_per_minute = max_per_minute
        self.window_ms = window_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = clock()

    def admit(self) -> Admission:
        """Try to take a slot in the current window.

        Returns:
            Admission(allowed=True) after taking a slot, or
            Admission(allowed=False, wait_ms=time left in the window)
        """
        with self._lock:
            now = self._clock()
            elapsed = now - self._window_start

            if elapsed >= self.window_ms:
                self._count = 0
                self._window_start = now
                elapsed = 0

            if self._count >= self.max_per_minute:
                wait_ms = int(self.window_ms - elapsed)
                logger.debug(f"Rate window full ({self._count}/{self.max_per_minute}), {wait_ms}ms left")
                return Admission(allowed=False, wait_ms=max(wait_ms, 1))

            self._count += 1
            return Admission(allowed=True)

    @property
    def count(self) -> int:
        """Calls admitted in the current window."""
        with self._lock:
            return self._count
