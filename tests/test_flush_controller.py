from __future__ import annotations

import logging

import pytest

from sensefuse.core.flush_controller import FlushController, FlushState
from sensefuse.core.location_cache import LocationCache
from sensefuse.core.models import LocationSnapshot, MotionSample
from sensefuse.core.sample_buffer import SampleBuffer


class _RecordingHandoff:
    def __init__(self) -> None:
        self.batches = []

    def dispatch(self, batch) -> None:
        self.batches.append(list(batch))


class _FailingHandoff:
    def dispatch(self, batch) -> None:
        raise RuntimeError("no event loop")


def _motion(timestamp: float) -> MotionSample:
    return MotionSample(x=0.1, y=0.2, z=0.3, timestamp=float(timestamp))


def _snapshot(timestamp: float = 0.0) -> LocationSnapshot:
    return LocationSnapshot.from_fix(52.37, 4.89, timestamp, altitude=2.0, accuracy=4.0)


def _make_controller(handoff=None, **kwargs):
    accel = SampleBuffer("accel")
    gyro = SampleBuffer("gyro")
    cache = LocationCache()
    handoff = handoff or _RecordingHandoff()
    controller = FlushController(accel, gyro, cache, handoff, **kwargs)
    return controller, accel, gyro, cache, handoff


def _feed_interleaved(controller, accel, gyro, count: int, *, start: float = 0.0) -> int:
    """Feed accel at start+0,10,20,... and gyro 5 ms later; return number of flushes."""
    flushes = 0
    for i in range(count):
        accel.append(_motion(start + i * 10))
        flushes += controller.on_sample_arrival()
        gyro.append(_motion(start + i * 10 + 5))
        flushes += controller.on_sample_arrival()
    return flushes


def test_controller_starts_idle() -> None:
    controller, *_ = _make_controller()

    assert controller.state is FlushState.IDLE


def test_threshold_crossing_flushes_one_full_batch() -> None:
    controller, accel, gyro, cache, handoff = _make_controller()
    cache.update(_snapshot(0.0))

    flushes = _feed_interleaved(controller, accel, gyro, 100)

    assert flushes == 1
    assert len(handoff.batches) == 1
    batch = handoff.batches[0]
    assert len(batch) == 100
    assert all(record.pair.alignment_error_ms == 5.0 for record in batch)
    assert batch[0].pair.gyro.timestamp == 5.0
    assert all(record.location == _snapshot(0.0) for record in batch)
    assert len(accel) == 0 and len(gyro) == 0
    assert controller.state is FlushState.ACCUMULATING
    assert controller.stats.records_emitted == 100


def test_no_flush_without_location() -> None:
    controller, accel, gyro, _, handoff = _make_controller()

    flushes = _feed_interleaved(controller, accel, gyro, 150)

    assert flushes == 0
    assert handoff.batches == []
    assert len(accel) == 150 and len(gyro) == 150
    assert controller.state is FlushState.ACCUMULATING


def test_first_fix_releases_accumulated_samples() -> None:
    controller, accel, gyro, cache, handoff = _make_controller()
    _feed_interleaved(controller, accel, gyro, 120)

    cache.update(_snapshot(500.0))
    accel.append(_motion(1200))
    assert controller.on_sample_arrival() is True

    assert len(handoff.batches) == 1
    assert len(handoff.batches[0]) == 121
    assert len(accel) == 0 and len(gyro) == 0


def test_one_stream_over_threshold_is_not_enough() -> None:
    controller, accel, gyro, cache, handoff = _make_controller(flush_threshold=10)
    cache.update(_snapshot())
    for i in range(50):
        accel.append(_motion(i))
        controller.on_sample_arrival()
    for i in range(9):
        gyro.append(_motion(i))
        controller.on_sample_arrival()

    assert handoff.batches == []


def test_unmatched_samples_are_dropped_silently() -> None:
    controller, accel, gyro, cache, handoff = _make_controller(flush_threshold=2)
    cache.update(_snapshot())
    accel.append(_motion(0))
    accel.append(_motion(1000))
    gyro.append(_motion(3))
    gyro.append(_motion(1200))

    controller.on_sample_arrival()

    batch = handoff.batches[0]
    assert [r.pair.accel.timestamp for r in batch] == [0.0]
    assert controller.stats.unmatched_samples == 1


def test_flush_with_no_matches_dispatches_nothing_but_drains() -> None:
    controller, accel, gyro, cache, handoff = _make_controller(flush_threshold=1)
    cache.update(_snapshot())
    accel.append(_motion(0))
    gyro.append(_motion(500))

    assert controller.on_sample_arrival() is True

    assert handoff.batches == []
    assert len(accel) == 0 and len(gyro) == 0


def test_teardown_flushes_remaining_samples() -> None:
    controller, accel, gyro, cache, handoff = _make_controller()
    cache.update(_snapshot())
    _feed_interleaved(controller, accel, gyro, 30)
    assert handoff.batches == []

    emitted = controller.teardown()

    assert len(emitted) == 30
    assert len(handoff.batches) == 1
    assert len(handoff.batches[0]) == 30
    assert len(accel) == 0 and len(gyro) == 0
    assert controller.state is FlushState.TORN_DOWN


def test_teardown_without_location_emits_nothing() -> None:
    controller, accel, gyro, _, handoff = _make_controller()
    _feed_interleaved(controller, accel, gyro, 30)

    assert controller.teardown() == []

    assert handoff.batches == []
    assert len(accel) == 0 and len(gyro) == 0


def test_torn_down_controller_stays_torn_down() -> None:
    controller, accel, gyro, cache, handoff = _make_controller(flush_threshold=1)
    cache.update(_snapshot())
    controller.teardown()

    accel.append(_motion(0))
    gyro.append(_motion(1))
    assert controller.on_sample_arrival() is False
    assert controller.teardown() == []

    assert controller.state is FlushState.TORN_DOWN
    assert handoff.batches == []


def test_dispatch_failure_is_logged_not_raised(caplog) -> None:
    controller, accel, gyro, cache, _ = _make_controller(_FailingHandoff(), flush_threshold=1)
    cache.update(_snapshot())
    accel.append(_motion(0))
    gyro.append(_motion(1))

    with caplog.at_level(logging.ERROR, logger="sensefuse.core.flush_controller"):
        assert controller.on_sample_arrival() is True

    assert "Failed to dispatch" in caplog.text
    assert controller.stats.batches_dispatched == 0
    assert len(accel) == 0


def test_stall_warning_logged_once(caplog) -> None:
    controller, accel, gyro, _, _ = _make_controller(stall_warning_samples=5)

    with caplog.at_level(logging.WARNING, logger="sensefuse.core.flush_controller"):
        _feed_interleaved(controller, accel, gyro, 20)

    warnings = [r for r in caplog.records if "No location fix yet" in r.getMessage()]
    assert len(warnings) == 1
    assert len(accel) == 20


def test_invalid_settings_are_rejected() -> None:
    with pytest.raises(ValueError):
        _make_controller(flush_threshold=0)
    with pytest.raises(ValueError):
        _make_controller(tolerance_ms=-1)
