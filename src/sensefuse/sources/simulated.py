"""Synthetic motion and location sources driven by the asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Sequence

import numpy as np

from ..core.models import LocationSnapshot, MotionSample
from .base import (
    ListenerHandle,
    ListenerRegistry,
    LocationListener,
    LocationRequest,
    MotionListener,
    PermissionStatus,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class SimulatedMotionSource:
    """
    Emits noisy three-axis samples at a configurable interval.

    The emission task starts with the first listener and stops once the last
    one is removed. :meth:`set_update_interval` takes effect on the next
    emission; a sleep already in progress is not cut short.
    """

    def __init__(
        self,
        label: str = "motion",
        *,
        interval_ms: int = 16,
        baseline: Sequence[float] = (0.0, 0.0, 0.0),
        noise_std: float = 0.02,
        seed: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.label = label
        self._registry: ListenerRegistry[MotionSample] = ListenerRegistry(label)
        self._interval_ms = 16
        self.set_update_interval(interval_ms)
        self._baseline = np.asarray(baseline, dtype=np.float64).reshape(3)
        self._noise_std = max(0.0, float(noise_std))
        self._rng = np.random.default_rng(seed)
        self._clock = clock or wall_clock_ms
        self._task: Optional[asyncio.Task[None]] = None
        self.emitted = 0

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def set_update_interval(self, interval_ms: int) -> None:
        interval = int(interval_ms)
        if interval <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms!r}")
        self._interval_ms = interval

    def add_listener(self, listener: MotionListener) -> ListenerHandle[MotionSample]:
        handle = self._registry.add(listener)
        handle.on_remove(self._stop_if_unused)
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run(), name=f"{self.label}-source")
        return handle

    def next_sample(self) -> MotionSample:
        values = self._baseline + self._rng.normal(0.0, self._noise_std, size=3)
        x, y, z = (float(v) for v in values)
        return MotionSample(x=x, y=y, z=z, timestamp=self._clock())

    def _stop_if_unused(self) -> None:
        if len(self._registry) == 0 and self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000.0)
            self._registry.emit(self.next_sample())
            self.emitted += 1


class SimulatedLocationSource:
    """
    Emits location fixes that random-walk around a starting point.

    ``permission`` decides what :meth:`request_permission` answers;
    ``first_fix_delay_ms`` models a slow first fix.
    """

    def __init__(
        self,
        latitude: float = 52.0,
        longitude: float = 4.0,
        *,
        altitude: Optional[float] = None,
        accuracy: Optional[float] = 5.0,
        permission: PermissionStatus = PermissionStatus.GRANTED,
        first_fix_delay_ms: int = 0,
        drift_deg: float = 1e-5,
        seed: Optional[int] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._position = np.array([latitude, longitude], dtype=np.float64)
        self._altitude = altitude
        self._accuracy = accuracy
        self._permission = permission
        self._first_fix_delay_ms = max(0, int(first_fix_delay_ms))
        self._drift = max(0.0, float(drift_deg))
        self._rng = np.random.default_rng(seed)
        self._clock = clock or wall_clock_ms
        self._registry: ListenerRegistry[LocationSnapshot] = ListenerRegistry("location")
        self._task: Optional[asyncio.Task[None]] = None
        self.fixes = 0

    async def request_permission(self) -> PermissionStatus:
        return self._permission

    async def watch_position(
        self, request: LocationRequest, listener: LocationListener
    ) -> ListenerHandle[LocationSnapshot]:
        if self._permission is not PermissionStatus.GRANTED:
            raise PermissionError("location permission has not been granted")
        handle = self._registry.add(listener)
        handle.on_remove(self._stop_if_unused)
        if self._task is None or self._task.done():
            interval_s = max(1, int(request.min_interval_ms)) / 1000.0
            self._task = asyncio.get_running_loop().create_task(self._run(interval_s), name="location-source")
        return handle

    def next_fix(self) -> LocationSnapshot:
        if self._drift > 0.0:
            self._position = self._position + self._rng.normal(0.0, self._drift, size=2)
        lat, lon = (float(v) for v in self._position)
        return LocationSnapshot.from_fix(
            lat,
            lon,
            self._clock(),
            altitude=self._altitude,
            accuracy=self._accuracy,
        )

    def _stop_if_unused(self) -> None:
        if len(self._registry) == 0 and self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self, interval_s: float) -> None:
        if self._first_fix_delay_ms:
            await asyncio.sleep(self._first_fix_delay_ms / 1000.0)
        while True:
            self._registry.emit(self.next_fix())
            self.fixes += 1
            await asyncio.sleep(interval_s)


__all__ = ["SimulatedMotionSource", "SimulatedLocationSource", "wall_clock_ms"]
