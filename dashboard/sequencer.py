"""Fetch sequencing for overlapping table requests.

Each request gets a ticket with a monotonically increasing sequence number.
When a request finishes, its outcome is handed to the sink only if no newer
ticket has been issued in the meantime; otherwise it is dropped, whether it
succeeded or failed. Completion order does not matter, only issuance order.

Cancelling superseded requests is optional and purely an optimisation: the
sequence check alone decides what reaches the sink.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

from dashboard.query_state import QueryState


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchTicket:
    sequence: int
    query_state: QueryState


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    ticket: FetchTicket
    result: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class FetchSequencer(Generic[T]):
    def __init__(
        self,
        fetch: Callable[[QueryState], Awaitable[T]],
        sink: Callable[[FetchOutcome[T]], None],
        *,
        cancel_superseded: bool = False,
    ):
        self._fetch = fetch
        self._sink = sink
        self._cancel_superseded = cancel_superseded
        self._latest = 0
        self._tasks: Dict[int, asyncio.Task] = {}

    @property
    def latest_sequence(self) -> int:
        return self._latest

    @property
    def in_flight(self) -> int:
        return sum(1 for t in self._tasks.values() if not t.done())

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket.sequence == self._latest

    def issue(self, state: QueryState) -> FetchTicket:
        """Start fetching `state` and return at once; must run inside an event loop."""
        loop = asyncio.get_running_loop()
        self._latest += 1
        ticket = FetchTicket(sequence=self._latest, query_state=state)
        if self._cancel_superseded:
            for task in self._tasks.values():
                task.cancel()
        task = loop.create_task(self._run(ticket), name=f"customer-fetch-{ticket.sequence}")
        self._tasks[ticket.sequence] = task
        task.add_done_callback(lambda _t, seq=ticket.sequence: self._tasks.pop(seq, None))
        return ticket

    async def _run(self, ticket: FetchTicket) -> None:
        try:
            result = await self._fetch(ticket.query_state)
        except asyncio.CancelledError:
            logger.debug("fetch #%d cancelled", ticket.sequence)
            raise
        except Exception as exc:
            outcome: FetchOutcome[T] = FetchOutcome(ticket=ticket, error=exc)
        else:
            outcome = FetchOutcome(ticket=ticket, result=result)

        if not self.is_current(ticket):
            logger.debug(
                "discarding stale fetch #%d (latest #%d, ok=%s)", ticket.sequence, self._latest, outcome.ok
            )
            return
        self._sink(outcome)

    async def drain(self) -> None:
        """Wait until no fetch is in flight, including ones issued while waiting."""
        while True:
            pending = [t for t in self._tasks.values() if not t.done()]
            if not pending:
                return
            results = await asyncio.gather(*pending, return_exceptions=True)
            for r in results:
                if isinstance(r, Exception):
                    raise r

    async def aclose(self) -> None:
        pending = list(self._tasks.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
