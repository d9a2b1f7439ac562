from subtrans.core.resilience import MetricsHub, ServiceStatus


def test_latency_average_is_weighted_and_rounded() -> None:
    hub = MetricsHub()

    assert hub.record_success(100).avg_latency_ms == 100
    assert hub.record_success(200).avg_latency_ms == 110
    snapshot = hub.record_success(300)

    assert snapshot.avg_latency_ms == 129
    assert snapshot.last_latency_ms == 300
    assert snapshot.successful_requests == 3


def test_success_after_down_is_degraded() -> None:
    hub = MetricsHub()
    hub.update(status=ServiceStatus.DOWN, last_error="boom")

    first = hub.record_success(50)
    second = hub.record_success(50)

    assert first.status is ServiceStatus.DEGRADED
    assert first.last_error is None
    assert second.status is ServiceStatus.HEALTHY


def test_increment_adds_to_counters() -> None:
    hub = MetricsHub()

    hub.increment(total_requests=1, failed_requests=1)
    snapshot = hub.increment(total_requests=2)

    assert snapshot.total_requests == 3
    assert snapshot.failed_requests == 1


def test_snapshot_is_a_copy() -> None:
    hub = MetricsHub()

    snapshot = hub.snapshot()
    snapshot.total_requests = 99

    assert hub.snapshot().total_requests == 0


def test_observers_are_notified_until_unsubscribed() -> None:
    hub = MetricsHub()
    seen = []
    unsubscribe = hub.subscribe(lambda: seen.append(hub.snapshot().total_requests))

    hub.increment(total_requests=1)
    unsubscribe()
    unsubscribe()
    hub.increment(total_requests=1)

    assert seen == [1]


def test_unsubscribe_only_removes_its_own_registration() -> None:
    hub = MetricsHub()
    calls = []

    def listener() -> None:
        calls.append(1)

    first = hub.subscribe(listener)
    hub.subscribe(listener)
    first()
    hub.update(last_error="x")

    assert len(calls) == 1


def test_reset_keeps_reservoir_level() -> None:
    hub = MetricsHub(reservoir_tokens=500_000)
    hub.increment(total_requests=4, total_tokens_used=800)

    snapshot = hub.reset(reservoir_tokens=499_200)

    assert snapshot.total_requests == 0
    assert snapshot.total_tokens_used == 0
    assert snapshot.status is ServiceStatus.IDLE
    assert snapshot.reservoir_tokens == 499_200
