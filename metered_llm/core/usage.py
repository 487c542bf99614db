"""
Usage accounting.

Running totals of attempts, tokens, cost and cache hits for the lifetime
of one client. Counters only grow until an explicit reset.
"""

import threading
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class UsageStats:
    """Point-in-time copy of the usage counters."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_usd: float = 0.0
    cache_hits: int = 0

    @property
    def average_cost_per_request(self) -> float:
        """Mean cost of a successful request in USD."""
        if self.successful_requests == 0:
            return 0.0
        return self.total_cost_usd / self.successful_requests

    @property
    def success_rate(self) -> float:
        """Successful requests as a percentage of attempts."""
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests * 100

    @property
    def cache_hit_rate(self) -> float:
        """Cache hits as a percentage of attempts."""
        if self.total_requests == 0:
            return 0.0
        return self.cache_hits / self.total_requests * 100

    @property
    def total_tokens(self) -> int:
        """Input plus output tokens across all successes."""
        return self.total_input_tokens + self.total_output_tokens

    def to_dict(self) -> dict:
        """Counters plus derived rates, for reporting."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_cost_usd": self.total_cost_usd,
            "cache_hits": self.cache_hits,
            "average_cost_per_request": self.average_cost_per_request,
            "success_rate": self.success_rate,
            "cache_hit_rate": self.cache_hit_rate,
        }


class UsageAccountant:
    """Thread-safe usage counters.

    Each outbound attempt is recorded once with record_attempt() and then
    exactly once as a success or a failure.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._stats = UsageStats()

    def record_attempt(self) -> None:
        with self._lock:
            self._stats = _bump(self._stats, total_requests=1)

    def record_success(self, input_tokens: int, output_tokens: int, cost_usd: float) -> None:
        """Add one successful call's usage to the totals."""
        with self._lock:
            self._stats = _bump(
                self._stats,
                successful_requests=1,
                total_input_tokens=input_tokens,
                total_output_tokens=output_tokens,
                total_cost_usd=cost_usd,
            )

    def record_failure(self) -> None:
        with self._lock:
            self._stats = _bump(self._stats, failed_requests=1)

    def record_cache_hit(self) -> None:
        with self._lock:
            self._stats = _bump(self._stats, cache_hits=1)

    def snapshot(self) -> UsageStats:
        """Current totals. The returned object is immutable."""
        with self._lock:
            return self._stats

    def reset(self) -> None:
        """Zero every counter. Operator action only."""
        with self._lock:
            self._stats = UsageStats()


def _bump(stats: UsageStats, **deltas) -> UsageStats:
    values = {name: getattr(stats, name) + delta for name, delta in deltas.items()}
    return replace(stats, **values)
