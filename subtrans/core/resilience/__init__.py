"""Resilience components for upstream model calls.

- MetricsHub: Observable health metrics
- TokenReservoir: Daily token budget
- CircuitBreaker: Consecutive-failure gate with cooldown
- classify / ErrorKind: Error taxonomy
- RetryEngine: Classification-driven retries
"""

from .metrics import MetricsHub, MetricsSnapshot, ServiceStatus
from .reservoir import TokenReservoir, ReservoirState
from .circuit_breaker import CircuitBreaker, CircuitBreakerState
from .errors import (
    ErrorKind,
    TranslationServiceError,
    QuotaExhaustedError,
    CircuitOpenError,
    BatchAlignmentError,
    UpstreamServiceError,
    classify,
)
from .retry import RetryEngine, OperationAborted

__all__ = [
    "MetricsHub",
    "MetricsSnapshot",
    "ServiceStatus",
    "TokenReservoir",
    "ReservoirState",
    "CircuitBreaker",
    "CircuitBreakerState",
    "ErrorKind",
    "TranslationServiceError",
    "QuotaExhaustedError",
    "CircuitOpenError",
    "BatchAlignmentError",
    "UpstreamServiceError",
    "classify",
    "RetryEngine",
    "OperationAborted",
]
