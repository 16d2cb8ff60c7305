"""Nearest-neighbour time alignment between two motion streams."""

from __future__ import annotations

import logging
from typing import List, Sequence

import numpy as np

from .models import AlignedPair, MotionSample

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_MS = 50.0

# Upper bound on the distance matrix built per chunk by the brute-force path.
_MAX_MATRIX_CELLS = 1_000_000


def _timestamps(samples: Sequence[MotionSample]) -> np.ndarray:
    return np.fromiter((s.timestamp for s in samples), dtype=np.float64, count=len(samples))


def _is_non_decreasing(values: np.ndarray) -> bool:
    return values.size < 2 or bool(np.all(values[1:] >= values[:-1]))


def _nearest_sorted(ref: np.ndarray, query: np.ndarray) -> np.ndarray:
    last = ref.size - 1
    right = np.searchsorted(ref, query, side="left")
    upper = np.clip(right, 0, last)
    lower = np.clip(right - 1, 0, last)
    # The lower neighbour comes first in ref order, so it wins ties.
    use_lower = np.abs(query - ref[lower]) <= np.abs(ref[upper] - query)
    chosen = np.where(use_lower, lower, upper)
    # Collapse runs of equal timestamps onto their first index.
    return np.searchsorted(ref, ref[chosen], side="left")


def _nearest_scan(ref: np.ndarray, query: np.ndarray) -> np.ndarray:
    out = np.empty(query.size, dtype=np.intp)
    chunk = max(1, _MAX_MATRIX_CELLS // max(1, ref.size))
    for start in range(0, query.size, chunk):
        block = query[start : start + chunk]
        distances = np.abs(ref[np.newaxis, :] - block[:, np.newaxis])
        # argmin returns the first minimum, i.e. the first-encountered match.
        out[start : start + block.size] = np.argmin(distances, axis=1)
    return out


def nearest_indices(ref: np.ndarray, query: np.ndarray) -> np.ndarray:
    """
    Return, for every entry of ``query``, the index of the closest value in ``ref``.

    Ties resolve to the lowest index in ``ref``. Sorted references use a
    binary-search merge; anything else falls back to a chunked exhaustive scan
    with identical results.
    """
    ref = np.asarray(ref, dtype=np.float64).reshape(-1)
    query = np.asarray(query, dtype=np.float64).reshape(-1)
    if ref.size == 0:
        raise ValueError("reference sequence must not be empty")
    if query.size == 0:
        return np.empty(0, dtype=np.intp)
    if _is_non_decreasing(ref):
        return _nearest_sorted(ref, query)
    logger.debug("Reference timestamps out of order; using exhaustive scan (%d x %d)", query.size, ref.size)
    return _nearest_scan(ref, query)


def align(
    seq_a: Sequence[MotionSample],
    seq_b: Sequence[MotionSample],
    tolerance_ms: float = DEFAULT_TOLERANCE_MS,
) -> List[AlignedPair]:
    """
    Pair every sample of ``seq_a`` with its nearest neighbour in ``seq_b``.

    Pairs whose timestamp gap exceeds ``tolerance_ms`` are dropped without
    error, so the result holds at most ``len(seq_a)`` pairs in ``seq_a`` order.
    An empty ``seq_b`` yields no pairs. Samples whose timestamp is not a
    finite number never take part in a pair.
    """
    tolerance = float(tolerance_ms)
    if tolerance < 0:
        raise ValueError(f"tolerance_ms must be >= 0, got {tolerance_ms!r}")
    if not seq_a or not seq_b:
        return []

    ts_a = _timestamps(seq_a)
    ts_b = _timestamps(seq_b)
    usable_b = np.flatnonzero(np.isfinite(ts_b))
    if usable_b.size < ts_b.size:
        logger.warning("Ignoring %d samples with non-finite timestamps", ts_b.size - usable_b.size)
    if usable_b.size == 0:
        return []
    idx = usable_b[nearest_indices(ts_b[usable_b], ts_a)]
    # NaN distances compare False, so non-finite seq_a samples drop out here.
    within = np.abs(ts_b[idx] - ts_a) <= tolerance

    return [AlignedPair(accel=seq_a[i], gyro=seq_b[int(j)]) for i, j in enumerate(idx) if within[i]]


__all__ = ["DEFAULT_TOLERANCE_MS", "align", "nearest_indices"]
