"""Push-event source interfaces for motion and location streams."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Protocol, TypeVar

from ..core.models import LocationSnapshot, MotionSample

logger = logging.getLogger(__name__)

T = TypeVar("T")

MotionListener = Callable[[MotionSample], None]
LocationListener = Callable[[LocationSnapshot], None]


class PermissionStatus(enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class LocationRequest:
    """Subscription options passed to :meth:`LocationSource.watch_position`."""

    accuracy: str = "high"
    min_interval_ms: int = 1000
    min_distance_m: float = 0.0


class Subscription(Protocol):
    def remove(self) -> None:  # pragma: no cover - protocol
        ...


class MotionSource(Protocol):
    """Accelerometer/gyroscope-like source pushing samples until unsubscribed."""

    def add_listener(self, listener: MotionListener) -> Subscription:  # pragma: no cover - protocol
        ...

    def set_update_interval(self, interval_ms: int) -> None:  # pragma: no cover - protocol
        ...


class LocationSource(Protocol):
    async def request_permission(self) -> PermissionStatus:  # pragma: no cover - protocol
        ...

    async def watch_position(
        self, request: LocationRequest, listener: LocationListener
    ) -> Subscription:  # pragma: no cover - protocol
        ...


class ListenerRegistry(Generic[T]):
    """
    Listener list shared by the concrete sources.

    Emission never raises: a failing listener is logged and the remaining
    listeners still receive the event.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._listeners: List[Callable[[T], None]] = []

    def add(self, listener: Callable[[T], None]) -> "ListenerHandle[T]":
        self._listeners.append(listener)
        return ListenerHandle(self, listener)

    def discard(self, listener: Callable[[T], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, event: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                logger.exception("Error in %s listener for event %r: %s", self.label, event, exc)

    def __len__(self) -> int:
        return len(self._listeners)


class ListenerHandle(Generic[T]):
    def __init__(self, registry: ListenerRegistry[T], listener: Callable[[T], None]) -> None:
        self._registry = registry
        self._listener = listener
        self._on_remove: List[Callable[[], None]] = []
        self.active = True

    def on_remove(self, callback: Callable[[], None]) -> None:
        self._on_remove.append(callback)

    def remove(self) -> None:
        if not self.active:
            return
        self.active = False
        self._registry.discard(self._listener)
        for callback in self._on_remove:
            callback()


__all__ = [
    "PermissionStatus",
    "LocationRequest",
    "Subscription",
    "MotionSource",
    "LocationSource",
    "MotionListener",
    "LocationListener",
    "ListenerRegistry",
    "ListenerHandle",
]
