"""Coordinator that wires sources, buffers, flush policy and sink for one run."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from ..config import FusionConfig, resolve_rate_mode
from ..config.sampling import RateMode
from ..sinks.base import BatchDispatcher, TableSink
from ..sources.base import (
    LocationRequest,
    LocationSource,
    MotionSource,
    PermissionStatus,
    Subscription,
)
from .flush_controller import FlushController
from .location_cache import LocationCache
from .models import LocationSnapshot, MotionSample
from .sample_buffer import SampleBuffer

logger = logging.getLogger(__name__)

PERMISSION_DENIED_TITLE = "Location Access Required"
PERMISSION_DENIED_MESSAGE = (
    "This pipeline requires location permission to record data. "
    "Please enable it in your device settings."
)


class FusionSession:
    """
    One pipeline run: two motion streams, one location stream, one sink.

    Every session owns its own buffers, location cache, dispatcher and flush
    controller, so several sessions can run side by side. Source callbacks
    mutate the buffers and evaluate the flush policy synchronously on the
    event-loop thread.
    """

    def __init__(
        self,
        config: FusionConfig,
        accelerometer: MotionSource,
        gyroscope: MotionSource,
        location: LocationSource,
        sink: TableSink,
    ) -> None:
        self.config = config.sanitized()
        self._accel_source = accelerometer
        self._gyro_source = gyroscope
        self._location_source = location

        self.accel_buffer: SampleBuffer[MotionSample] = SampleBuffer("accel")
        self.gyro_buffer: SampleBuffer[MotionSample] = SampleBuffer("gyro")
        self.location_cache = LocationCache()
        self.dispatcher = BatchDispatcher(sink, self.config.table_name)
        self.controller = FlushController(
            self.accel_buffer,
            self.gyro_buffer,
            self.location_cache,
            self.dispatcher,
            flush_threshold=self.config.flush_threshold,
            tolerance_ms=self.config.tolerance_ms,
            stall_warning_samples=self.config.stall_warning_samples,
        )

        self._motion_subs: List[Subscription] = []
        self._location_sub: Optional[Subscription] = None
        self.permission_denied = False
        self.started = False
        self.rate_mode: Optional[RateMode] = None

    # ---------------------------------------------------------------- lifecycle
    async def start(self) -> bool:
        """
        Ask for location permission and subscribe to all sources.

        Returns ``False`` when permission is refused; the session then stays
        stopped and a host should show :data:`PERMISSION_DENIED_MESSAGE`.
        """
        if self.started:
            return True
        if self.controller.torn_down:
            logger.warning("Cannot start a session that has been torn down")
            return False

        status = await self._location_source.request_permission()
        if status is not PermissionStatus.GRANTED:
            self.permission_denied = True
            logger.warning("Location permission %s; fusion session not started", status.value)
            return False

        request = LocationRequest(
            accuracy=self.config.location_accuracy,
            min_interval_ms=self.config.location_interval_ms,
            min_distance_m=self.config.location_distance_m,
        )
        self.dispatcher.bind_loop(asyncio.get_running_loop())
        self._location_sub = await self._location_source.watch_position(request, self._on_location)
        self._subscribe_motion()
        self.started = True
        self.set_rate_mode(self.config.rate_mode)
        logger.info(
            "Fusion session started (table=%r, threshold=%d, tolerance=%.1f ms)",
            self.config.table_name,
            self.config.flush_threshold,
            self.config.tolerance_ms,
        )
        return True

    def teardown(self) -> None:
        """
        Stop all sources, flush what is left and discard the location cache.

        Sources are unsubscribed before the final flush so nothing can be
        appended during or after it. The final batch is not awaited; it is
        scheduled on the loop the session was started on, so a synchronous
        host may call this after that loop stopped and run the loop again
        (for example with :meth:`BatchDispatcher.wait_idle`) to store it. A
        closed loop cannot take the batch and it is logged as dropped.
        """
        self._unsubscribe_motion()
        if self._location_sub is not None:
            self._location_sub.remove()
            self._location_sub = None
        self.controller.teardown()
        self.location_cache.clear()
        self.started = False

    # ---------------------------------------------------------------- controls
    @property
    def motion_active(self) -> bool:
        return bool(self._motion_subs)

    def toggle(self) -> bool:
        """Pause or resume the motion streams; return whether they are now active."""
        if self.controller.torn_down or not self.started:
            return False
        if self._motion_subs:
            self._unsubscribe_motion()
        else:
            self._subscribe_motion()
        return self.motion_active

    def set_rate_mode(self, mode: str) -> RateMode:
        """Apply a slow/fast preset to both motion sources."""
        preset = resolve_rate_mode(mode)
        self.set_update_interval(preset.interval_ms)
        self.rate_mode = preset
        return preset

    def set_update_interval(self, interval_ms: int) -> None:
        self._accel_source.set_update_interval(interval_ms)
        self._gyro_source.set_update_interval(interval_ms)
        logger.info("Motion update interval set to %d ms", interval_ms)

    # ---------------------------------------------------------------- callbacks
    def _on_accel(self, sample: MotionSample) -> None:
        self.accel_buffer.append(sample)
        self.controller.on_sample_arrival()

    def _on_gyro(self, sample: MotionSample) -> None:
        self.gyro_buffer.append(sample)
        self.controller.on_sample_arrival()

    def _on_location(self, snapshot: LocationSnapshot) -> None:
        self.location_cache.update(snapshot)

    def _subscribe_motion(self) -> None:
        if self._motion_subs:
            return
        self._motion_subs = [
            self._accel_source.add_listener(self._on_accel),
            self._gyro_source.add_listener(self._on_gyro),
        ]

    def _unsubscribe_motion(self) -> None:
        subs, self._motion_subs = self._motion_subs, []
        for sub in subs:
            sub.remove()


__all__ = ["FusionSession", "PERMISSION_DENIED_TITLE", "PERMISSION_DENIED_MESSAGE"]
