"""Stream tickets for latest-request-wins streaming.

Every streaming call takes a ticket when it is created. Issuing a newer
ticket makes all older ones stale; a stale stream stops emitting chunks.
"""

import itertools
import threading
from typing import AsyncGenerator


class StreamTicket:
    """Cancellation token of one streaming session."""

    def __init__(self, registry: "StreamRegistry", number: int):
        self._registry = registry
        self.number = number

    @property
    def is_stale(self) -> bool:
        return self._registry.latest != self.number

    def __repr__(self) -> str:
        return f"StreamTicket(number={self.number}, stale={self.is_stale})"


class StreamRegistry:
    """Issues monotonically increasing stream tickets."""

    def __init__(self):
        self._counter = itertools.count(1)
        self._latest = 0
        self._lock = threading.Lock()

    @property
    def latest(self) -> int:
        return self._latest

    def issue(self) -> StreamTicket:
        with self._lock:
            self._latest = next(self._counter)
            return StreamTicket(self, self._latest)


class StreamSession:
    """Async iterator over one streaming translation.

    Exposes the ticket so a consumer can tell a finished stream from one
    that stopped because a newer stream superseded it.
    """

    def __init__(self, ticket: StreamTicket, chunks: AsyncGenerator[str, None]):
        self.ticket = ticket
        self._chunks = chunks

    @property
    def is_stale(self) -> bool:
        return self.ticket.is_stale

    def __aiter__(self) -> "StreamSession":
        return self

    async def __anext__(self) -> str:
        return await self._chunks.__anext__()

    async def aclose(self) -> None:
        await self._chunks.aclose()
