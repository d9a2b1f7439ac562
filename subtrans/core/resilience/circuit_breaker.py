"""Circuit breaker for the upstream model service."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .metrics import MetricsHub

logger = logging.getLogger(__name__)


@dataclass
class CircuitBreakerState:
    """Breaker counters. ``is_open`` implies failures reached the threshold."""

    consecutive_failures: int = 0
    last_failure: float = 0.0
    is_open: bool = False


class CircuitBreaker:
    """Consecutive-failure gate with a timed cooldown.

    Only hard failures are recorded here. Rate limiting heals on its own and
    must not be passed to ``record_failure``.
    """

    def __init__(
        self,
        metrics: MetricsHub,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        self.metrics = metrics
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._state = CircuitBreakerState()
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitBreakerState:
        with self._lock:
            return CircuitBreakerState(
                consecutive_failures=self._state.consecutive_failures,
                last_failure=self._state.last_failure,
                is_open=self._state.is_open,
            )

    def admit(self) -> bool:
        """Whether a new request may proceed.

        An open breaker closes itself here once the cooldown has elapsed
        since the last failure.
        """
        with self._lock:
            if not self._state.is_open:
                return True
            elapsed = self._clock() - self._state.last_failure
            if elapsed < self.cooldown_seconds:
                return False
            self._state.is_open = False
            self._state.consecutive_failures = 0

        logger.info(f"[CircuitBreaker] Cooldown elapsed after {elapsed:.1f}s, closing")
        self.metrics.update(is_circuit_open=False)
        return True

    def record_failure(self) -> None:
        with self._lock:
            self._state.consecutive_failures += 1
            self._state.last_failure = self._clock()
            opened = (
                not self._state.is_open
                and self._state.consecutive_failures >= self.failure_threshold
            )
            if opened:
                self._state.is_open = True
            failures = self._state.consecutive_failures

        if opened:
            logger.warning(
                f"[CircuitBreaker] Opened after {failures} consecutive failures, "
                f"cooling down for {self.cooldown_seconds}s"
            )
            self.metrics.update(is_circuit_open=True)

    def record_success(self) -> None:
        with self._lock:
            was_open = self._state.is_open
            self._state.consecutive_failures = 0
            self._state.is_open = False

        if was_open:
            self.metrics.update(is_circuit_open=False)
