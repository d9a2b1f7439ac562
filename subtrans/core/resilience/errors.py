"""Error taxonomy and classification for upstream calls.

Every failure that crosses the orchestrator is mapped onto a single closed
``ErrorKind``. The kind decides whether the Retry Engine retries, how long it
waits, and whether the circuit breaker is charged.
"""

import asyncio
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed error taxonomy."""

    QUOTA_EXHAUSTED = "quota_exhausted"  # Daily reservoir empty
    CIRCUIT_OPEN = "circuit_open"  # Breaker cooling down
    RATE_LIMITED = "rate_limited"  # 429 / upstream quota window
    SERVICE_OVERLOADED = "service_overloaded"  # 503
    NETWORK_ERROR = "network_error"
    BATCH_ALIGNMENT = "batch_alignment"  # Line count mismatch in batch output
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE

    @property
    def charges_breaker(self) -> bool:
        """Whether a failure of this kind counts towards opening the breaker."""
        return self not in (
            ErrorKind.RATE_LIMITED,
            ErrorKind.QUOTA_EXHAUSTED,
            ErrorKind.CIRCUIT_OPEN,
        )


_RETRYABLE = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVICE_OVERLOADED,
        ErrorKind.NETWORK_ERROR,
        ErrorKind.BATCH_ALIGNMENT,
    }
)


class TranslationServiceError(Exception):
    """Base class for errors raised by the orchestrator."""

    kind: Optional[ErrorKind] = None


class QuotaExhaustedError(TranslationServiceError):
    """The daily token reservoir is empty."""

    kind = ErrorKind.QUOTA_EXHAUSTED

    def __init__(self, message: str = "Daily token reservoir exhausted. Please try again tomorrow."):
        super().__init__(message)


class CircuitOpenError(TranslationServiceError):
    """The circuit breaker refuses new work during its cooldown."""

    kind = ErrorKind.CIRCUIT_OPEN

    def __init__(self, message: str = "System is in cooldown due to repeated failures. Please wait a minute."):
        super().__init__(message)


class BatchAlignmentError(TranslationServiceError):
    """Upstream returned a different number of lines than were sent."""

    kind = ErrorKind.BATCH_ALIGNMENT

    def __init__(self, sent: int, received: int):
        self.sent = sent
        self.received = received
        super().__init__(
            f"Batch alignment error: sent {sent} unique lines, got {received}"
        )


class UpstreamServiceError(TranslationServiceError):
    """Provider failure normalized at the gateway boundary."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def _status_of(error: BaseException) -> Optional[int]:
    for attr in ("status_code", "status", "code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def classify(error: BaseException) -> ErrorKind:
    """Map a failure onto the error taxonomy.

    Rule order matters: rate limiting is checked before overload, so a
    message mentioning both "429" and "unavailable" is RATE_LIMITED.

    Args:
        error: Any exception raised by an upstream call

    Returns:
        The ErrorKind driving retry and breaker policy
    """
    # Orchestrator-raised errors carry their own kind
    if isinstance(error, TranslationServiceError) and error.kind is not None:
        return error.kind

    status = _status_of(error)
    message = str(error).lower()

    if (
        status == 429
        or "429" in message
        or "quota" in message
        or "exhausted" in message
    ):
        return ErrorKind.RATE_LIMITED

    if (
        status == 503
        or "503" in message
        or "overloaded" in message
        or "unavailable" in message
    ):
        return ErrorKind.SERVICE_OVERLOADED

    if (
        "fetch" in message
        or "network" in message
        or isinstance(error, (ConnectionError, asyncio.TimeoutError))
    ):
        return ErrorKind.NETWORK_ERROR

    if "batch alignment error" in message:
        return ErrorKind.BATCH_ALIGNMENT

    return ErrorKind.UNKNOWN
