"""Flush policy: when to turn buffered motion samples into a dispatched batch."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from ..tools.debug import time_block
from .alignment import DEFAULT_TOLERANCE_MS, align
from .assembler import assemble
from .location_cache import LocationCache
from .models import FusedRecord
from .sample_buffer import MotionBuffer

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_THRESHOLD = 100


class BatchHandoff(Protocol):
    """Anything that accepts a batch without blocking (see ``BatchDispatcher``)."""

    def dispatch(self, batch: Sequence[FusedRecord]) -> object:  # pragma: no cover - protocol
        ...


class FlushState(enum.Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"
    TORN_DOWN = "torn_down"


@dataclass
class FlushStats:
    flushes: int = 0
    batches_dispatched: int = 0
    records_emitted: int = 0
    unmatched_samples: int = 0


class FlushController:
    """
    The only stateful decision-maker of the pipeline.

    It is poked after every motion sample and fires when both buffers hold at
    least ``flush_threshold`` samples and a location fix is known. A flush
    drains both buffers, aligns them, joins the current location and hands a
    non-empty batch to ``handoff`` without awaiting it. :meth:`teardown` does
    one last flush with whatever is left and moves to ``TORN_DOWN`` for good.

    Everything runs on the event-loop thread; no locking is needed.
    """

    def __init__(
        self,
        accel: MotionBuffer,
        gyro: MotionBuffer,
        location: LocationCache,
        handoff: BatchHandoff,
        *,
        flush_threshold: int = DEFAULT_FLUSH_THRESHOLD,
        tolerance_ms: float = DEFAULT_TOLERANCE_MS,
        stall_warning_samples: Optional[int] = None,
    ) -> None:
        if flush_threshold < 1:
            raise ValueError(f"flush_threshold must be >= 1, got {flush_threshold!r}")
        if tolerance_ms < 0:
            raise ValueError(f"tolerance_ms must be >= 0, got {tolerance_ms!r}")
        self._accel = accel
        self._gyro = gyro
        self._location = location
        self._handoff = handoff
        self.flush_threshold = int(flush_threshold)
        self.tolerance_ms = float(tolerance_ms)
        self.stall_warning_samples = stall_warning_samples
        self._state = FlushState.IDLE
        self._stall_warned = False
        self.stats = FlushStats()

    @property
    def state(self) -> FlushState:
        return self._state

    @property
    def torn_down(self) -> bool:
        return self._state is FlushState.TORN_DOWN

    # ---------------------------------------------------------------- triggers
    def on_sample_arrival(self) -> bool:
        """Evaluate the flush policy; return True when a flush ran."""
        if self._state is FlushState.TORN_DOWN:
            logger.debug("Sample arrival after teardown ignored")
            return False
        if self._state is FlushState.IDLE:
            self._state = FlushState.ACCUMULATING

        if self._location.current() is None:
            self._maybe_warn_stall()
            return False
        if len(self._accel) < self.flush_threshold or len(self._gyro) < self.flush_threshold:
            return False

        self._flush(reason="threshold")
        self._state = FlushState.ACCUMULATING
        return True

    def teardown(self) -> List[FusedRecord]:
        """
        Final flush of whatever remains, then stop for good.

        The last batch is dispatched best-effort and not awaited. Returns the
        records handed off (empty when nothing could be assembled).
        """
        if self._state is FlushState.TORN_DOWN:
            return []
        batch = self._flush(reason="teardown")
        self._state = FlushState.TORN_DOWN
        logger.info(
            "Flush controller torn down after %d flushes (%d records emitted)",
            self.stats.flushes,
            self.stats.records_emitted,
        )
        return batch

    # ---------------------------------------------------------------- internals
    def _flush(self, *, reason: str) -> List[FusedRecord]:
        self._state = FlushState.FLUSHING
        with time_block(f"flush[{reason}]"):
            accel = self._accel.drain_all()
            gyro = self._gyro.drain_all()
            snapshot = self._location.current()
            # Without a snapshot assemble() yields nothing, so skip the join.
            pairs = align(accel, gyro, self.tolerance_ms) if snapshot is not None else []
            batch = assemble(pairs, snapshot)

        self.stats.flushes += 1
        if snapshot is not None:
            self.stats.unmatched_samples += len(accel) - len(pairs)
        self._stall_warned = False
        logger.debug(
            "Flush (%s): accel=%d gyro=%d pairs=%d records=%d",
            reason,
            len(accel),
            len(gyro),
            len(pairs),
            len(batch),
        )

        if batch:
            try:
                self._handoff.dispatch(batch)
            except Exception:
                logger.exception("Failed to dispatch batch of %d records; batch dropped", len(batch))
                return batch
            self.stats.batches_dispatched += 1
            self.stats.records_emitted += len(batch)
        return batch

    def _maybe_warn_stall(self) -> None:
        limit = self.stall_warning_samples
        if limit is None or self._stall_warned:
            return
        longest = max(len(self._accel), len(self._gyro))
        if longest < limit:
            return
        self._stall_warned = True
        logger.warning(
            "No location fix yet; %d motion samples buffered (accel=%d, gyro=%d, oldest accel t=%s)",
            longest,
            len(self._accel),
            len(self._gyro),
            self._accel.oldest_timestamp(),
        )


__all__ = [
    "DEFAULT_FLUSH_THRESHOLD",
    "BatchHandoff",
    "FlushController",
    "FlushState",
    "FlushStats",
]
