"""Metrics hub for upstream health.

Holds the observable health picture of the translation service. Observers
register a no-argument callback and read the current state through
``snapshot()`` when notified.
"""

import itertools
import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ServiceStatus(str, Enum):
    """Upstream health status."""

    IDLE = "IDLE"
    HEALTHY = "HEALTHY"
    DEGRADED = "DEGRADED"
    DOWN = "DOWN"


class MetricsSnapshot(BaseModel):
    """Point-in-time view of orchestrator health."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    rate_limit_count: int = 0
    last_latency_ms: int = 0
    avg_latency_ms: int = 0
    last_error: Optional[str] = None
    status: ServiceStatus = ServiceStatus.IDLE
    last_check_timestamp: float = Field(default_factory=time.time)
    total_tokens_used: int = 0
    reservoir_tokens: int = 0
    is_circuit_open: bool = False


class MetricsHub:
    """Single writer, many readers store for MetricsSnapshot."""

    # Weight of the previous average in the latency EWMA
    LATENCY_DECAY = 0.9

    def __init__(self, reservoir_tokens: int = 0):
        self._snapshot = MetricsSnapshot(reservoir_tokens=reservoir_tokens)
        self._listeners: Dict[int, Listener] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def snapshot(self) -> MetricsSnapshot:
        """Return a copy of the current metrics."""
        with self._lock:
            return self._snapshot.model_copy()

    def update(self, **changes) -> MetricsSnapshot:
        """Apply field changes and notify observers.

        Args:
            **changes: MetricsSnapshot field values to overwrite

        Returns:
            The updated snapshot
        """
        with self._lock:
            self._snapshot = self._snapshot.model_copy(update=changes)
            current = self._snapshot.model_copy()
        self._notify()
        return current

    def increment(self, **deltas: int) -> MetricsSnapshot:
        """Add deltas to counter fields and notify observers."""
        with self._lock:
            changes = {
                name: getattr(self._snapshot, name) + delta
                for name, delta in deltas.items()
            }
            self._snapshot = self._snapshot.model_copy(update=changes)
            current = self._snapshot.model_copy()
        self._notify()
        return current

    def record_success(self, latency_ms: int) -> MetricsSnapshot:
        """Fold a successful call into counters and latency statistics."""
        with self._lock:
            old_avg = self._snapshot.avg_latency_ms
            if old_avg == 0:
                new_avg = latency_ms
            else:
                new_avg = old_avg * self.LATENCY_DECAY + latency_ms * (1 - self.LATENCY_DECAY)

            # A DOWN service that answers again is only recovering
            if self._snapshot.status == ServiceStatus.DOWN:
                status = ServiceStatus.DEGRADED
            else:
                status = ServiceStatus.HEALTHY

            self._snapshot = self._snapshot.model_copy(
                update={
                    "successful_requests": self._snapshot.successful_requests + 1,
                    "last_latency_ms": latency_ms,
                    "avg_latency_ms": round(new_avg),
                    "status": status,
                    "last_error": None,
                }
            )
            current = self._snapshot.model_copy()
        self._notify()
        return current

    def reset(self, reservoir_tokens: int) -> MetricsSnapshot:
        """Return to the zero state, keeping the live reservoir level."""
        with self._lock:
            self._snapshot = MetricsSnapshot(reservoir_tokens=reservoir_tokens)
            current = self._snapshot.model_copy()
        logger.info("[Metrics] Reset to zero state")
        self._notify()
        return current

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an observer.

        Args:
            listener: Callback invoked after every mutation

        Returns:
            Idempotent unsubscribe function
        """
        with self._lock:
            key = next(self._ids)
            self._listeners[key] = listener

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(key, None)

        return unsubscribe

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            listener()
