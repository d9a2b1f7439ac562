import pytest

from conftest import ManualClock, RecordingSleep

from subtrans.core.resilience import (
    CircuitBreaker,
    MetricsHub,
    OperationAborted,
    QuotaExhaustedError,
    RetryEngine,
    ServiceStatus,
    TokenReservoir,
    UpstreamServiceError,
)
from subtrans.core.storage import MemoryStore


def make_engine(clock: ManualClock, sleep: RecordingSleep, capacity: int = 500_000) -> RetryEngine:
    metrics = MetricsHub()
    reservoir = TokenReservoir(MemoryStore(), capacity=capacity, clock=clock)
    reservoir.load()
    return RetryEngine(
        breaker=CircuitBreaker(metrics, clock=clock),
        metrics=metrics,
        reservoir=reservoir,
        max_retries=3,
        base_delay=1.0,
        jitter=0.2,
        rate_limit_wait=30.0,
        sleep=sleep,
        clock=clock,
    )


class ScriptedCall:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.mark.asyncio
async def test_success_updates_metrics(clock, sleep) -> None:
    engine = make_engine(clock, sleep)

    result = await engine.execute(ScriptedCall("ok"))

    snapshot = engine.metrics.snapshot()
    assert result == "ok"
    assert snapshot.total_requests == 1
    assert snapshot.successful_requests == 1
    assert snapshot.status is ServiceStatus.HEALTHY
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_transient_failure_is_retried(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    call = ScriptedCall(UpstreamServiceError("model overloaded", status_code=503), "ok")

    result = await engine.execute(call)

    snapshot = engine.metrics.snapshot()
    assert result == "ok"
    assert call.calls == 2
    assert len(sleep.delays) == 1
    assert 1.0 <= sleep.delays[0] <= 1.2
    assert snapshot.failed_requests == 1
    assert snapshot.successful_requests == 1
    assert engine.breaker.state.consecutive_failures == 0


@pytest.mark.asyncio
async def test_backoff_doubles_until_retries_are_spent(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    error = UpstreamServiceError("Service Unavailable", status_code=503)
    call = ScriptedCall(error)

    with pytest.raises(UpstreamServiceError):
        await engine.execute(call)

    assert call.calls == 4
    assert len(sleep.delays) == 3
    for delay, base in zip(sleep.delays, [1.0, 2.0, 4.0]):
        assert base <= delay <= base + 0.2
    assert engine.breaker.state.consecutive_failures == 4
    snapshot = engine.metrics.snapshot()
    assert snapshot.total_requests == 4
    assert snapshot.failed_requests == 4
    assert snapshot.status is ServiceStatus.DOWN
    assert snapshot.last_error == "Service Unavailable"


@pytest.mark.asyncio
async def test_rate_limit_waits_fixed_time_without_charging_breaker(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    call = ScriptedCall(
        UpstreamServiceError("429 Too Many Requests", status_code=429),
        UpstreamServiceError("429 Too Many Requests", status_code=429),
        "ok",
    )

    result = await engine.execute(call)

    assert result == "ok"
    assert sleep.delays == [30.0, 30.0]
    assert engine.breaker.state.consecutive_failures == 0
    snapshot = engine.metrics.snapshot()
    assert snapshot.rate_limit_count == 2
    assert snapshot.failed_requests == 0


@pytest.mark.asyncio
async def test_rate_limit_marks_service_degraded(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    call = ScriptedCall(UpstreamServiceError("quota exceeded", status_code=429))

    with pytest.raises(UpstreamServiceError):
        await engine.execute(call, max_retries=0)

    snapshot = engine.metrics.snapshot()
    assert snapshot.status is ServiceStatus.DEGRADED
    assert snapshot.last_error == "Rate Limit (429)"


@pytest.mark.asyncio
async def test_unknown_error_is_not_retried(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    call = ScriptedCall(ValueError("Invalid argument"))

    with pytest.raises(ValueError):
        await engine.execute(call)

    assert call.calls == 1
    assert sleep.delays == []
    assert engine.breaker.state.consecutive_failures == 1
    assert engine.metrics.snapshot().last_error == "Invalid argument"


@pytest.mark.asyncio
async def test_exhausted_reservoir_blocks_call(clock, sleep) -> None:
    engine = make_engine(clock, sleep, capacity=10)
    engine.reservoir.consume(10)
    call = ScriptedCall("ok")

    with pytest.raises(QuotaExhaustedError):
        await engine.execute(call)

    assert call.calls == 0
    assert engine.metrics.snapshot().total_requests == 0


@pytest.mark.asyncio
async def test_abort_is_checked_before_each_attempt(clock, sleep) -> None:
    engine = make_engine(clock, sleep)
    call = ScriptedCall("ok")

    with pytest.raises(OperationAborted):
        await engine.execute(call, should_abort=lambda: True)

    assert call.calls == 0
