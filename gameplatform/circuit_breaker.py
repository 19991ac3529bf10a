"""
Game Platform Backend: Circuit Breaker
========================================

What:  Circuit breaker state machine plus a per-service registry.
Why:   When an upstream (a platform service behind the gateway, or the mail
       relay) is down, callers should fail fast instead of stacking up
       timeouts and retries.
Who:   gateway.proxy (one breaker per upstream service) and
       services.notification_sender (mail relay).

State Machine:
    CLOSED (normal operation)
        → On failure: record timestamp
        → When failures inside the monitoring period >= threshold: OPEN

    OPEN (rejecting all requests)
        → All calls raise CircuitBreakerOpenError immediately
        → After recovery_timeout seconds: HALF_OPEN

    HALF_OPEN (testing recovery)
        → Allow requests through
        → On success: CLOSED (failure history cleared)
        → On failure: back to OPEN (timer restarted)

Thread Safety:
    Not thread-safe; uvicorn async workers share a single event loop per
    process, and each process keeps its own breaker state.
"""

import logging
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from gameplatform.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str = "upstream",
        failure_threshold: int = 5,
        recovery_timeout: int = 30,
        monitoring_period: int = 60,
    ):
        """
        Args:
            name: Service name used in logs and error responses
            failure_threshold: Failures inside the monitoring period before opening
            recovery_timeout: Seconds to stay OPEN before testing recovery
            monitoring_period: Sliding window (seconds) in which failures are counted
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.monitoring_period = monitoring_period
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None
        self.opened_at: Optional[float] = None
        self.total_requests = 0
        self.total_failures = 0
        self._failures: Deque[float] = deque()

    @property
    def failure_count(self) -> int:
        """Failures still inside the monitoring period."""
        self._prune(time.time())
        return len(self._failures)

    def _prune(self, now: float) -> None:
        cutoff = now - self.monitoring_period
        while self._failures and self._failures[0] < cutoff:
            self._failures.popleft()

    def can_execute(self) -> bool:
        """
        Check if a request is allowed through the circuit breaker.

        Raises:
            CircuitBreakerOpenError if OPEN and the recovery timeout hasn't elapsed.
        """
        if self.state == self.OPEN:
            elapsed = time.time() - (self.opened_at or 0)
            if elapsed >= self.recovery_timeout:
                logger.info(
                    "Circuit breaker '%s' transitioning to HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
                self.state = self.HALF_OPEN
            else:
                remaining = max(1, int(self.recovery_timeout - elapsed))
                raise CircuitBreakerOpenError(service=self.name, recovery_time=remaining)

        self.total_requests += 1
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker '%s' transitioning to CLOSED (service recovered)", self.name)
        self._failures.clear()
        self.state = self.CLOSED
        self.opened_at = None

    def record_failure(self) -> None:
        now = time.time()
        self.total_failures += 1
        self.last_failure_time = now
        self._failures.append(now)
        self._prune(now)

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker '%s' returning to OPEN (test request failed)", self.name)
            self._open(now)
        elif self.state == self.CLOSED and len(self._failures) >= self.failure_threshold:
            logger.warning(
                "Circuit breaker '%s' OPENING after %d failures in %ds",
                self.name,
                len(self._failures),
                self.monitoring_period,
            )
            self._open(now)

    def _open(self, now: float) -> None:
        self.state = self.OPEN
        self.opened_at = now

    def reset(self) -> None:
        """Force the breaker back to CLOSED and forget all failures."""
        self._failures.clear()
        self.state = self.CLOSED
        self.opened_at = None
        self.last_failure_time = None

    def stats(self) -> Dict[str, Any]:
        return {
            "service": self.name,
            "state": self.state,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "total_requests": self.total_requests,
            "total_failures": self.total_failures,
            "last_failure_time": self.last_failure_time,
        }


class CircuitBreakerRegistry:
    """Lazily creates one breaker per service name with shared settings."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 30, monitoring_period: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.monitoring_period = monitoring_period
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get(self, name: str) -> CircuitBreaker:
        if name not in self._breakers:
            self._breakers[name] = CircuitBreaker(
                name=name,
                failure_threshold=self.failure_threshold,
                recovery_timeout=self.recovery_timeout,
                monitoring_period=self.monitoring_period,
            )
        return self._breakers[name]

    def reset(self, name: Optional[str] = None) -> List[str]:
        """Reset one breaker (or all of them). Returns the names that were reset."""
        if name is not None:
            if name not in self._breakers:
                return []
            self._breakers[name].reset()
            return [name]
        for breaker in self._breakers.values():
            breaker.reset()
        return list(self._breakers)
