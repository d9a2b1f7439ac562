import asyncio

import pytest

from subtrans.core.resilience import (
    BatchAlignmentError,
    CircuitOpenError,
    ErrorKind,
    QuotaExhaustedError,
    UpstreamServiceError,
    classify,
)


class StatusError(Exception):
    def __init__(self, message: str, status):
        super().__init__(message)
        self.status = status


@pytest.mark.parametrize(
    "error, kind",
    [
        (UpstreamServiceError("Too Many Requests", status_code=429), ErrorKind.RATE_LIMITED),
        (StatusError("slow down", "429"), ErrorKind.RATE_LIMITED),
        (Exception("Resource has been exhausted (e.g. check quota)"), ErrorKind.RATE_LIMITED),
        (Exception("429 while the model is unavailable"), ErrorKind.RATE_LIMITED),
        (UpstreamServiceError("oops", status_code=503), ErrorKind.SERVICE_OVERLOADED),
        (Exception("The model is overloaded. Please try again later."), ErrorKind.SERVICE_OVERLOADED),
        (Exception("Service Unavailable"), ErrorKind.SERVICE_OVERLOADED),
        (Exception("Failed to fetch"), ErrorKind.NETWORK_ERROR),
        (ConnectionError("connection reset"), ErrorKind.NETWORK_ERROR),
        (asyncio.TimeoutError(), ErrorKind.NETWORK_ERROR),
        (BatchAlignmentError(sent=3, received=2), ErrorKind.BATCH_ALIGNMENT),
        (Exception("Batch alignment error: sent 3 unique lines, got 2"), ErrorKind.BATCH_ALIGNMENT),
        (ValueError("Invalid argument"), ErrorKind.UNKNOWN),
    ],
)
def test_classify(error: BaseException, kind: ErrorKind) -> None:
    assert classify(error) is kind


def test_own_errors_keep_their_kind() -> None:
    # The default message mentions "exhausted" but must not read as a 429
    assert classify(QuotaExhaustedError()) is ErrorKind.QUOTA_EXHAUSTED
    assert classify(CircuitOpenError()) is ErrorKind.CIRCUIT_OPEN


def test_retry_policy_per_kind() -> None:
    assert {k for k in ErrorKind if k.retryable} == {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVICE_OVERLOADED,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.BATCH_ALIGNMENT,
    }
    assert ErrorKind.RATE_LIMITED.charges_breaker is False
    assert ErrorKind.SERVICE_OVERLOADED.charges_breaker is True
    assert ErrorKind.UNKNOWN.charges_breaker is True


def test_batch_alignment_message() -> None:
    error = BatchAlignmentError(sent=30, received=28)

    assert str(error) == "Batch alignment error: sent 30 unique lines, got 28"
    assert (error.sent, error.received) == (30, 28)
