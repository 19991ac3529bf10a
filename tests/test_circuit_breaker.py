"""
Game Platform Backend: Circuit Breaker Unit Tests
===================================================

What:  Tests for CircuitBreaker and CircuitBreakerRegistry.
Why:   The gateway and the e-mail sender both rely on the breaker to stop
       hammering an upstream that is down.

What we test:
    ✅ CLOSED → OPEN at the failure threshold
    ✅ OPEN rejects calls with a recovery hint
    ✅ HALF_OPEN after the recovery timeout; success closes, failure reopens
    ✅ Failures outside the monitoring period are forgotten
    ✅ Registry hands out one breaker per service and resets them
"""

import time
from unittest.mock import patch

import pytest

from gameplatform.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from gameplatform.exceptions import CircuitBreakerOpenError


class TestCircuitBreaker:
    """Tests for the CircuitBreaker resilience pattern."""

    def test_initial_state_is_closed(self):
        """New circuit breaker should start in CLOSED (allowing calls)."""
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0
        assert cb.can_execute() is True

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        for _ in range(4):
            cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        cb.can_execute()

    def test_opens_at_threshold(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(3):
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

    def test_open_circuit_rejects_calls(self):
        """OPEN circuit should raise with the service name and a retry hint."""
        cb = CircuitBreaker(name="catalog", failure_threshold=1, recovery_timeout=60)
        cb.record_failure()

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            cb.can_execute()
        assert exc_info.value.service == "catalog"
        assert 1 <= exc_info.value.recovery_time <= 60

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.failure_count == 2

        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == CircuitBreaker.CLOSED

    def test_half_open_after_recovery_timeout(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        time.sleep(0.01)
        assert cb.can_execute() is True
        assert cb.state == CircuitBreaker.HALF_OPEN

    def test_success_after_half_open_closes(self):
        cb = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()

        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0

    def test_failure_in_half_open_reopens(self):
        """A failed test request sends the breaker straight back to OPEN."""
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=0)
        for _ in range(3):
            cb.record_failure()
        time.sleep(0.01)
        cb.can_execute()
        assert cb.state == CircuitBreaker.HALF_OPEN

        cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

    def test_failures_outside_monitoring_period_expire(self):
        cb = CircuitBreaker(failure_threshold=3, recovery_timeout=60, monitoring_period=10)
        with patch("gameplatform.circuit_breaker.time.time", return_value=1000.0):
            cb.record_failure()
            cb.record_failure()
        with patch("gameplatform.circuit_breaker.time.time", return_value=1020.0):
            cb.record_failure()
            assert cb.failure_count == 1
            assert cb.state == CircuitBreaker.CLOSED

    def test_stats_and_reset(self):
        cb = CircuitBreaker(name="users", failure_threshold=1, recovery_timeout=60)
        cb.can_execute()
        cb.record_failure()

        stats = cb.stats()
        assert stats["service"] == "users"
        assert stats["state"] == CircuitBreaker.OPEN
        assert stats["total_requests"] == 1
        assert stats["total_failures"] == 1

        cb.reset()
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.stats()["last_failure_time"] is None


class TestCircuitBreakerRegistry:

    def test_one_breaker_per_service(self):
        registry = CircuitBreakerRegistry(failure_threshold=2)
        assert registry.get("catalog") is registry.get("catalog")
        assert registry.get("catalog") is not registry.get("users")
        assert registry.get("users").failure_threshold == 2

    def test_reset_single_and_all(self):
        registry = CircuitBreakerRegistry(failure_threshold=1)
        registry.get("catalog").record_failure()
        registry.get("users").record_failure()

        assert registry.reset("catalog") == ["catalog"]
        assert registry.get("catalog").state == CircuitBreaker.CLOSED
        assert registry.get("users").state == CircuitBreaker.OPEN

        assert sorted(registry.reset()) == ["catalog", "users"]
        assert registry.get("users").state == CircuitBreaker.CLOSED

    def test_reset_unknown_service_is_noop(self):
        assert CircuitBreakerRegistry().reset("nope") == []
