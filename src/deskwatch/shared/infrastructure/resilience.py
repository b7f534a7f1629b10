"""
Circuit Breaker
===============

Guards the optional classifier calls. After ``failure_threshold`` consecutive
failures the circuit opens and calls are rejected until ``recovery_timeout``
seconds have passed; the next call is then let through as a probe. A failed
probe reopens the circuit immediately.
"""

import time
from typing import Callable, Optional

from deskwatch.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class CircuitState:
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure breaker, one per classifier."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock
        self._failures = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return CircuitState.CLOSED
        if self._clock() - self._opened_at >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    def allow_request(self) -> bool:
        return self.state != CircuitState.OPEN

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("Circuit breaker closed", extra={"circuit": self.name})
        self._failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        probing = self.state == CircuitState.HALF_OPEN
        self._failures += 1
        if not probing and self._failures < self.failure_threshold:
            return

        self._opened_at = self._clock()
        logger.warning(
            "Circuit breaker opened",
            extra={
                "circuit": self.name,
                "consecutive_failures": self._failures,
                "recovery_timeout": self.recovery_timeout,
            },
        )
