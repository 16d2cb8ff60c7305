from __future__ import annotations

from typing import Generic, List, Optional, TypeVar

from .models import MotionSample

T = TypeVar("T")


class SampleBuffer(Generic[T]):
    """
    Append-only sample store for one motion stream.

    Unlike a ring buffer this one never overwrites: it grows until :meth:`drain_all` hands the whole contents to
    the caller. Instances are owned and mutated from the event-loop thread so
    a plain list is sufficient.
    """

    def __init__(self, name: str = "stream") -> None:
        self.name = name
        self._items: List[T] = []

    def append(self, item: T) -> None:
        self._items.append(item)

    def drain_all(self) -> List[T]:
        """Return every buffered item and leave the buffer empty.

        The list is swapped out rather than copied, so the caller owns the
        returned object and new appends land in a fresh list.
        """
        drained, self._items = self._items, []
        return drained

    def oldest_timestamp(self) -> Optional[float]:
        if not self._items:
            return None
        return getattr(self._items[0], "timestamp", None)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"SampleBuffer(name={self.name!r}, size={len(self._items)})"


MotionBuffer = SampleBuffer[MotionSample]

__all__ = ["SampleBuffer", "MotionBuffer"]
