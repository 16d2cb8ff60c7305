"""Sink protocol and the fire-and-forget batch dispatcher."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence, Set

from ..core.models import FusedRecord

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class SinkError(RuntimeError):
    """Raised by a sink when a batch could not be stored."""


class TableSink(Protocol):
    """Append-only storage accepting whole batches of rows for a named table."""

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None:  # pragma: no cover - protocol
        ...


class BatchDispatcher:
    """
    Hands batches to a :class:`TableSink` without waiting for the outcome.

    Each batch becomes a detached :class:`asyncio.Task`. Its result is only
    observed by :meth:`_on_done`, which logs success or failure; failed
    batches are not retried. Several batches may be in flight at once and may
    complete in any order.
    """

    def __init__(
        self,
        sink: TableSink,
        table: str,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._sink = sink
        self._table = table
        self._loop = loop
        # asyncio only keeps weak references to tasks.
        self._in_flight: Set[asyncio.Task[None]] = set()
        self.dispatched = 0
        self.succeeded = 0
        self.failed = 0

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Schedule later inserts on ``loop`` even when called from outside it."""
        self._loop = loop

    @property
    def table(self) -> str:
        return self._table

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def dispatch(self, batch: Sequence[FusedRecord]) -> Optional[asyncio.Task[None]]:
        """Start storing ``batch`` and return immediately."""
        if not batch:
            return None
        rows = [record.as_row() for record in batch]
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(self._sink.insert(self._table, rows))
        self._in_flight.add(task)
        self.dispatched += 1
        size = len(rows)
        task.add_done_callback(lambda t: self._on_done(t, size))
        logger.debug("Dispatched %d rows to %r (%d in flight)", size, self._table, len(self._in_flight))
        return task

    def _on_done(self, task: asyncio.Task[None], size: int) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            self.failed += 1
            logger.warning("Insert of %d rows into %r was cancelled before completion", size, self._table)
            return
        exc = task.exception()
        if exc is not None:
            self.failed += 1
            logger.error("Insert of %d rows into %r failed: %s", size, self._table, exc)
            return
        self.succeeded += 1
        logger.debug("Inserted %d rows into %r", size, self._table)

    async def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the batches currently in flight.

        Intended for hosts that can afford to linger after teardown. Returns
        ``False`` when ``timeout`` expires with batches still pending.
        """
        pending = set(self._in_flight)
        if not pending:
            return True
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        return not still_pending


__all__ = ["Row", "SinkError", "TableSink", "BatchDispatcher"]
