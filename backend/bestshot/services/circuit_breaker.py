"""
Best Shot Backend — Circuit Breaker
=====================================

What:  Stops calling the image host after repeated failures so a PDF export
       falls back to placeholders immediately instead of waiting on timeouts
       for every photo.

State Machine:
    CLOSED    → failures counted; at threshold → OPEN
    OPEN      → can_execute() raises CircuitBreakerOpenError until
                recovery_timeout has elapsed → HALF_OPEN
    HALF_OPEN → calls allowed; first success → CLOSED, first failure → OPEN

Not thread-safe. All callers run on the event loop thread.
"""

import logging
import time
from typing import Callable, Optional

from bestshot.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Returns True when a call may proceed.

        Raises:
            CircuitBreakerOpenError while OPEN and still inside the recovery window.
        """
        if self.state != self.OPEN:
            return True

        elapsed = self._clock() - (self.opened_at or 0.0)
        if elapsed >= self.recovery_timeout:
            logger.info("[%s] circuit HALF_OPEN after %.1fs", self.name, elapsed)
            self.state = self.HALF_OPEN
            return True

        raise CircuitBreakerOpenError(
            recovery_time=max(1, int(self.recovery_timeout - elapsed)),
            context={"breaker": self.name},
        )

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("[%s] circuit CLOSED (host recovered)", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.state == self.HALF_OPEN:
            logger.warning("[%s] circuit back to OPEN (probe failed)", self.name)
            self._open()
        elif self.state == self.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                "[%s] circuit OPEN after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self._open()

    def _open(self) -> None:
        self.state = self.OPEN
        self.opened_at = self._clock()
