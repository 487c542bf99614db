"""
Unit tests for usage accounting.
"""

import threading

import pytest

from metered_llm.core.usage import UsageAccountant, UsageStats


class TestUsageStats:
    """Test derived statistics."""

    def test_empty_stats_rates_are_zero(self):
        """No attempts means zero rates, not division errors."""
        stats = UsageStats()
        assert stats.average_cost_per_request == 0.0
        assert stats.success_rate == 0.0
        assert stats.cache_hit_rate == 0.0

    def test_derived_fields(self):
        """Averages and rates are computed from the counters."""
        stats = UsageStats(
            total_requests=4,
            successful_requests=3,
            failed_requests=1,
            total_input_tokens=300,
            total_output_tokens=150,
            total_cost_usd=0.03,
            cache_hits=2
        )
        assert stats.average_cost_per_request == pytest.approx(0.01)
        assert stats.success_rate == 75.0
        assert stats.cache_hit_rate == 50.0
        assert stats.total_tokens == 450

    def test_to_dict_includes_derived_fields(self):
        """Reporting dictionary carries counters and rates."""
        data = UsageStats(total_requests=2, successful_requests=1).to_dict()
        assert data["total_requests"] == 2
        assert data["success_rate"] == 50.0
        assert "cache_hit_rate" in data


class TestUsageAccountant:
    """Test counter updates and reset."""

    def setup_method(self):
        """Set up a fresh accountant."""
        self.accountant = UsageAccountant()

    def test_accounting_consistency(self):
        """N successes and M failures add up exactly."""
        costs = [0.001, 0.002, 0.0005]
        for cost in costs:
            self.accountant.record_attempt()
            self.accountant.record_success(100, 50, cost)
        for _ in range(2):
            self.accountant.record_attempt()
            self.accountant.record_failure()

        stats = self.accountant.snapshot()
        assert stats.total_requests == 5
        assert stats.successful_requests == 3
        assert stats.failed_requests == 2
        assert stats.total_input_tokens == 300
        assert stats.total_output_tokens == 150
        assert stats.total_cost_usd == pytest.approx(sum(costs))

    def test_cache_hits_counted_separately(self):
        """Cache hits do not count as requests."""
        self.accountant.record_cache_hit()
        self.accountant.record_cache_hit()
        stats = self.accountant.snapshot()
        assert stats.cache_hits == 2
        assert stats.total_requests == 0

    def test_snapshot_is_immutable_copy(self):
        """Later updates do not change an earlier snapshot."""
        before = self.accountant.snapshot()
        self.accountant.record_attempt()
        assert before.total_requests == 0
        assert self.accountant.snapshot().total_requests == 1

    def test_reset_zeroes_everything(self):
        """reset() returns every counter to zero."""
        self.accountant.record_attempt()
        self.accountant.record_success(10, 10, 0.1)
        self.accountant.record_cache_hit()
        self.accountant.reset()
        assert self.accountant.snapshot() == UsageStats()

    def test_concurrent_updates_are_not_lost(self):
        """Counters stay exact under parallel updates."""
        def worker():
            for _ in range(500):
                self.accountant.record_attempt()
                self.accountant.record_success(1, 2, 0.0)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = self.accountant.snapshot()
        assert stats.total_requests == 2000
        assert stats.successful_requests == 2000
        assert stats.total_input_tokens == 2000
        assert stats.total_output_tokens == 4000
