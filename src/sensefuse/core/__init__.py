"""Core fusion pipeline: buffers, alignment, location context and flush policy.

This package sits between the event sources and the storage sinks. Motion
samples accumulate in :class:`SampleBuffer` objects, :func:`align` pairs the
two motion streams by timestamp, :func:`assemble` attaches the latest
:class:`LocationSnapshot`, and :class:`FlushController` decides when all of
that happens. :mod:`session` wires it to real sources and a sink.
"""

from .alignment import DEFAULT_TOLERANCE_MS, align, nearest_indices
from .assembler import assemble
from .flush_controller import (
    DEFAULT_FLUSH_THRESHOLD,
    BatchHandoff,
    FlushController,
    FlushState,
    FlushStats,
)
from .location_cache import LocationCache
from .models import FUSED_COLUMNS, AlignedPair, FusedRecord, LocationSnapshot, MotionSample
from .sample_buffer import MotionBuffer, SampleBuffer

__all__ = [
    "DEFAULT_TOLERANCE_MS",
    "align",
    "nearest_indices",
    "assemble",
    "DEFAULT_FLUSH_THRESHOLD",
    "BatchHandoff",
    "FlushController",
    "FlushState",
    "FlushStats",
    "LocationCache",
    "FUSED_COLUMNS",
    "AlignedPair",
    "FusedRecord",
    "LocationSnapshot",
    "MotionSample",
    "MotionBuffer",
    "SampleBuffer",
]
