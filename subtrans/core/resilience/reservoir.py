"""Daily token reservoir.

A spending budget that refills to full capacity on the first use of each
local calendar day and is persisted after every mutation.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel, ValidationError

from ..storage import KeyValueStore

logger = logging.getLogger(__name__)

RESERVOIR_KEY = "token_reservoir"
DEFAULT_CAPACITY = 500_000


class ReservoirState(BaseModel):
    """Persisted reservoir record."""

    capacity: int
    remaining: int
    last_refill: float
    total_consumed: int = 0


def _same_local_day(a: float, b: float) -> bool:
    return datetime.fromtimestamp(a).date() == datetime.fromtimestamp(b).date()


class TokenReservoir:
    """Saturating daily token budget.

    No operation raises: unreadable state loads as a full reservoir and a
    failed write only costs persistence, not the in-memory budget.
    """

    def __init__(
        self,
        store: KeyValueStore,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()
        self._state = self._full(total_consumed=0)

    def _full(self, total_consumed: int) -> ReservoirState:
        return ReservoirState(
            capacity=self.capacity,
            remaining=self.capacity,
            last_refill=self._clock(),
            total_consumed=total_consumed,
        )

    def load(self) -> ReservoirState:
        """Load persisted state, refilling if the calendar day changed.

        Returns:
            Copy of the loaded state
        """
        raw = self.store.get(RESERVOIR_KEY)
        state: Optional[ReservoirState] = None
        if raw is not None:
            try:
                state = ReservoirState.model_validate_json(raw)
            except ValidationError as e:
                logger.error(f"[Reservoir] Failed to load reservoir, starting full: {e}")

        with self._lock:
            if state is None:
                self._state = self._full(total_consumed=0)
            else:
                # Clamp records written with another capacity
                state.remaining = max(0, min(state.remaining, state.capacity))
                self._state = state
                self._refill_if_new_day()
            self._persist()
            return self._state.model_copy()

    def _refill_if_new_day(self) -> bool:
        now = self._clock()
        if _same_local_day(self._state.last_refill, now):
            return False
        logger.info(
            f"[Reservoir] New day, refilling to {self.capacity} tokens "
            f"(total consumed so far: {self._state.total_consumed})"
        )
        self._state = self._full(total_consumed=self._state.total_consumed)
        return True

    def refresh(self) -> None:
        """Apply the daily refill for long-running processes."""
        with self._lock:
            if self._refill_if_new_day():
                self._persist()

    def consume(self, count: int) -> ReservoirState:
        """Charge tokens against the budget.

        Args:
            count: Tokens used by a call (negative values count as zero)

        Returns:
            Copy of the updated state
        """
        count = max(0, int(count))
        with self._lock:
            self._state.remaining = max(0, self._state.remaining - count)
            self._state.total_consumed += count
            self._persist()
            return self._state.model_copy()

    def snapshot(self) -> ReservoirState:
        with self._lock:
            return self._state.model_copy()

    @property
    def remaining(self) -> int:
        with self._lock:
            return self._state.remaining

    @property
    def is_exhausted(self) -> bool:
        self.refresh()
        return self.remaining <= 0

    def _persist(self) -> None:
        try:
            self.store.set(RESERVOIR_KEY, self._state.model_dump_json())
        except OSError as e:
            logger.warning(f"[Reservoir] Failed to persist reservoir: {e}")
