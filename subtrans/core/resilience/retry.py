"""Retry engine for upstream calls.

Wraps a single upstream call with admission checks (token reservoir and
circuit breaker), error classification, metrics updates and a bounded
tenacity retry loop whose backoff depends on the error kind:

- RATE_LIMITED: fixed wait covering the upstream quota window, no growth,
  breaker not charged
- other retryable kinds: ``delay + jitter``, delay doubled afterwards,
  breaker charged
- anything else: breaker charged, re-raised immediately
"""

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, List, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from .circuit_breaker import CircuitBreaker
from .errors import (
    CircuitOpenError,
    ErrorKind,
    QuotaExhaustedError,
    TranslationServiceError,
    classify,
)
from .metrics import MetricsHub, ServiceStatus
from .reservoir import TokenReservoir

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class OperationAborted(TranslationServiceError):
    """The caller's abort signal was observed before an upstream call."""

    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message)


def _is_retryable(error: BaseException) -> bool:
    return classify(error).retryable


class wait_classified(wait_base):
    """Backoff keyed on the classified error of the last attempt.

    The instance keeps the growing delay, so use a fresh one per execution.
    ``delays`` records every wait handed to tenacity.
    """

    def __init__(
        self,
        base_delay: float,
        jitter: float,
        rate_limit_wait: float,
    ):
        self.next_delay = base_delay
        self.jitter = jitter
        self.rate_limit_wait = rate_limit_wait
        self.delays: List[float] = []

    def __call__(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if error is not None and classify(error) is ErrorKind.RATE_LIMITED:
            delay = self.rate_limit_wait
        else:
            delay = self.next_delay + random.uniform(0, self.jitter)
            self.next_delay *= 2
        self.delays.append(delay)
        return delay


class RetryEngine:
    """Executes upstream calls with classification-driven retries."""

    def __init__(
        self,
        breaker: CircuitBreaker,
        metrics: MetricsHub,
        reservoir: TokenReservoir,
        max_retries: int = 3,
        base_delay: float = 1.0,
        jitter: float = 0.2,
        rate_limit_wait: float = 30.0,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the retry engine.

        Args:
            breaker: Circuit breaker charged on hard failures
            metrics: Metrics hub updated on every attempt
            reservoir: Token reservoir checked before every attempt
            max_retries: Retries after the first attempt
            base_delay: First backoff delay in seconds
            jitter: Upper bound of random jitter added to backoff (seconds)
            rate_limit_wait: Fixed wait after a rate-limit failure (seconds)
            sleep: Awaitable sleep, replaceable in tests
            clock: Monotonic clock used for latency
        """
        self.breaker = breaker
        self.metrics = metrics
        self.reservoir = reservoir
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.jitter = jitter
        self.rate_limit_wait = rate_limit_wait
        self._sleep = sleep
        self._clock = clock

    def check_admission(self) -> None:
        """Raise if a new upstream call must not be started."""
        if self.reservoir.is_exhausted:
            raise QuotaExhaustedError()
        if not self.breaker.admit():
            raise CircuitOpenError()

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        should_abort: Optional[Callable[[], bool]] = None,
    ) -> T:
        """Run ``call`` with admission checks and retries.

        Args:
            call: Zero-argument coroutine function performing one upstream call
            max_retries: Override of the configured retry count
            base_delay: Override of the configured first backoff delay
            should_abort: Checked before every attempt; True raises OperationAborted

        Returns:
            Result of the first successful attempt

        Raises:
            QuotaExhaustedError: Reservoir empty
            CircuitOpenError: Breaker open
            OperationAborted: Abort signal observed
            Exception: The last upstream error, unchanged, once retries are spent
                or for a non-retryable kind
        """
        retries = self.max_retries if max_retries is None else max_retries
        backoff = wait_classified(
            base_delay=self.base_delay if base_delay is None else base_delay,
            jitter=self.jitter,
            rate_limit_wait=self.rate_limit_wait,
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=backoff,
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                if should_abort is not None and should_abort():
                    raise OperationAborted()
                result = await self._attempt(call)
        return result

    async def _attempt(self, call: Callable[[], Awaitable[T]]) -> T:
        self.check_admission()

        self.metrics.increment(total_requests=1)
        start = self._clock()
        try:
            result = await call()
        except Exception as e:
            self.record_failure(e)
            raise

        self.record_success(round((self._clock() - start) * 1000))
        return result

    def record_success(self, latency_ms: int) -> None:
        """Apply a successful call to breaker and metrics."""
        self.breaker.record_success()
        self.metrics.record_success(latency_ms)

    def record_failure(self, error: BaseException) -> ErrorKind:
        """Apply a failed call to breaker and metrics.

        Returns:
            The classified error kind
        """
        kind = classify(error)
        if kind is ErrorKind.RATE_LIMITED:
            self.metrics.increment(rate_limit_count=1)
            self.metrics.update(
                status=ServiceStatus.DEGRADED,
                last_error="Rate Limit (429)",
            )
        else:
            if kind.charges_breaker:
                self.breaker.record_failure()
            self.metrics.increment(failed_requests=1)
            self.metrics.update(
                status=ServiceStatus.DOWN,
                last_error=str(error) or "Unknown Error",
            )
        logger.warning(f"[RetryEngine] Upstream call failed: kind={kind.value}, error={error}")
        return kind

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        kind = classify(error).value if error is not None else "none"
        logger.warning(
            f"[RetryEngine] Attempt {retry_state.attempt_number} failed ({kind}), "
            f"retrying in {delay:.2f}s"
        )
