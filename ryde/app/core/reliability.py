"""
Reliability utilities for outbound calls to third-party services.
"""

import logging
import time
from typing import Awaitable, Callable, Any

logger = logging.getLogger("ryde.reliability")


class CircuitOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Simple Circuit Breaker.

    After `failure_threshold` consecutive failures the circuit opens and
    rejects calls for `reset_timeout` seconds; the first call after that is a
    trial (HALF_OPEN) that either closes the circuit or re-opens it.
    """

    def __init__(self, name: str, failure_threshold: int = 5, reset_timeout: float = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.failures = 0
        self.opened_at = 0.0
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        if self.state == "OPEN":
            if time.monotonic() - self.opened_at >= self.reset_timeout:
                self.state = "HALF_OPEN"
            else:
                raise CircuitOpenError(f"Circuit '{self.name}' is OPEN")

        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.reset_state()
        return result

    def record_failure(self):
        self.failures += 1
        if self.state == "HALF_OPEN" or self.failures >= self.failure_threshold:
            if self.state != "OPEN":
                logger.warning("Circuit '%s' opened after %d failures", self.name, self.failures)
            self.state = "OPEN"
            self.opened_at = time.monotonic()

    def reset_state(self):
        self.failures = 0
        self.state = "CLOSED"


# Shared breaker for the image host
media_circuit_breaker = CircuitBreaker("media", failure_threshold=3, reset_timeout=30)
