"""
Replay of recorded sensor event logs.

A recording is a line-oriented log with one event per line. The JSON-lines
form carries a ``stream`` field plus the stream's values::

    {"stream": "accel", "timestamp": 1000, "x": 0.01, "y": -0.02, "z": 0.98}
    {"stream": "gyro", "timestamp": 1005, "x": 0.1, "y": 0.0, "z": -0.1}
    {"stream": "location", "timestamp": 990, "latitude": 52.1, "longitude": 4.3,
     "altitude": 3.0, "accuracy": 4.5}

A comma-separated form is accepted as well: ``accel,timestamp,x,y,z`` and
``location,timestamp,latitude,longitude[,altitude[,accuracy]]``. Blank lines
and ``#`` comments are skipped; malformed lines, including ones carrying NaN
or infinite numbers, are logged and skipped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any, Iterable, Mapping, Optional, Sequence, Tuple, Union

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

ACCEL = "accel"
GYRO = "gyro"
LOCATION = "location"

_STREAM_ALIASES = {
    "accel": ACCEL,
    "accelerometer": ACCEL,
    "gyro": GYRO,
    "gyroscope": GYRO,
    "location": LOCATION,
    "gps": LOCATION,
}

Event = Tuple[str, Union[MotionSample, LocationSnapshot]]


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _finite(name: str, value: Any) -> float:
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"{name} is not finite: {value!r}")
    return number


def _event_from_mapping(obj: Mapping[str, Any]) -> Optional[Event]:
    stream = _STREAM_ALIASES.get(str(obj.get("stream", "")).strip().lower())
    if stream is None:
        logger.warning("Unknown stream in recorded event: %r", obj)
        return None
    timestamp = obj.get("timestamp")
    if timestamp is None:
        logger.warning("Missing field %s in recorded event: %r", "timestamp", obj)
        return None
    try:
        if stream == LOCATION:
            return stream, LocationSnapshot.from_fix(
                float(obj["latitude"]),
                float(obj["longitude"]),
                _finite("timestamp", timestamp),
                altitude=_optional_float(obj.get("altitude")),
                accuracy=_optional_float(obj.get("accuracy")),
            )
        return stream, MotionSample(
            x=_finite("x", obj["x"]),
            y=_finite("y", obj["y"]),
            z=_finite("z", obj["z"]),
            timestamp=_finite("timestamp", timestamp),
        )
    except KeyError as exc:
        logger.warning("Missing field %s in recorded event: %r", exc, obj)
    except (TypeError, ValueError) as exc:
        logger.warning("Bad field value in recorded event %r (%s)", obj, exc)
    return None


def _event_from_csv(text: str) -> Optional[Event]:
    parts: Sequence[str] = [p.strip() for p in text.split(",")]
    stream = _STREAM_ALIASES.get(parts[0].lower())
    if stream is None:
        logger.warning("Unknown stream in recorded line: %r", text)
        return None
    if stream == LOCATION:
        if len(parts) < 4:
            logger.warning("Expected at least 4 values for a location line, got %d: %r", len(parts), text)
            return None
        keys = ("stream", "timestamp", "latitude", "longitude", "altitude", "accuracy")
    else:
        if len(parts) < 5:
            logger.warning("Expected 5 values for a motion line, got %d: %r", len(parts), text)
            return None
        keys = ("stream", "timestamp", "x", "y", "z")
    return _event_from_mapping(dict(zip(keys, parts)))


def parse_event(line: str) -> Optional[Event]:
    """
    Parse one recorded line into ``(stream, sample)``.

    Invalid lines return ``None`` so callers can skip them without raising.
    """
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    if text[0] == "{":
        try:
            obj = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Dropping malformed JSON line: %s (%s)", text, exc)
            return None
        if not isinstance(obj, Mapping):
            logger.debug("Skipping non-object JSON payload: %r", obj)
            return None
        return _event_from_mapping(obj)
    return _event_from_csv(text)


def format_event(stream: str, sample: Union[MotionSample, LocationSnapshot]) -> str:
    """Render an event as a JSON line understood by :func:`parse_event`."""
    if isinstance(sample, LocationSnapshot):
        payload = {
            "stream": stream,
            "timestamp": sample.fix_timestamp,
            "latitude": sample.latitude,
            "longitude": sample.longitude,
            "altitude": sample.altitude,
            "accuracy": sample.accuracy,
        }
    else:
        payload = {"stream": stream, "timestamp": sample.timestamp, "x": sample.x, "y": sample.y, "z": sample.z}
    return json.dumps(payload)


class _ReplayMotionChannel:
    def __init__(self, label: str) -> None:
        self.label = label
        self.registry: ListenerRegistry[MotionSample] = ListenerRegistry(label)
        self.interval_ms: Optional[int] = None

    def add_listener(self, listener: MotionListener) -> ListenerHandle[MotionSample]:
        return self.registry.add(listener)

    def set_update_interval(self, interval_ms: int) -> None:
        # Recorded data keeps its original rate.
        self.interval_ms = int(interval_ms)
        logger.debug("Replay %s ignores update interval %d ms", self.label, self.interval_ms)


class _ReplayLocationChannel:
    def __init__(self, permission: PermissionStatus) -> None:
        self.permission = permission
        self.registry: ListenerRegistry[LocationSnapshot] = ListenerRegistry("location")
        self.request: Optional[LocationRequest] = None

    async def request_permission(self) -> PermissionStatus:
        return self.permission

    async def watch_position(
        self, request: LocationRequest, listener: LocationListener
    ) -> ListenerHandle[LocationSnapshot]:
        self.request = request
        return self.registry.add(listener)


class RecordingFeed:
    """
    Pushes a recorded event log through three source channels.

    ``accelerometer``, ``gyroscope`` and ``location`` satisfy the
    :class:`~sensefuse.sources.base.MotionSource` and
    :class:`~sensefuse.sources.base.LocationSource` protocols, so a session
    can subscribe to them exactly as it would to live sources.
    """

    def __init__(self, *, permission: PermissionStatus = PermissionStatus.GRANTED) -> None:
        self.accelerometer = _ReplayMotionChannel("accelerometer")
        self.gyroscope = _ReplayMotionChannel("gyroscope")
        self.location = _ReplayLocationChannel(permission)
        self.skipped = 0

    def emit(self, event: Event) -> None:
        stream, sample = event
        if stream == ACCEL:
            self.accelerometer.registry.emit(sample)  # type: ignore[arg-type]
        elif stream == GYRO:
            self.gyroscope.registry.emit(sample)  # type: ignore[arg-type]
        else:
            self.location.registry.emit(sample)  # type: ignore[arg-type]

    async def play(self, lines: Iterable[str], *, realtime: bool = False, speed: float = 1.0) -> int:
        """
        Emit every parsable line in order and return the number of events sent.

        The loop yields to the event loop after each event so dispatched
        batches make progress during long replays. With ``realtime`` the gaps
        between recorded timestamps are reproduced, divided by ``speed``.
        """
        sent = 0
        previous_ts: Optional[float] = None
        for raw_line in lines:
            event = parse_event(raw_line)
            if event is None:
                if raw_line.strip() and not raw_line.lstrip().startswith("#"):
                    self.skipped += 1
                continue
            if realtime:
                ts = _event_timestamp(event)
                if previous_ts is not None and ts > previous_ts:
                    await asyncio.sleep((ts - previous_ts) / 1000.0 / max(speed, 1e-6))
                previous_ts = ts
            self.emit(event)
            sent += 1
            await asyncio.sleep(0)
        return sent


def _event_timestamp(event: Event) -> float:
    sample = event[1]
    if isinstance(sample, LocationSnapshot):
        return sample.fix_timestamp
    return sample.timestamp


__all__ = ["ACCEL", "GYRO", "LOCATION", "Event", "parse_event", "format_event", "RecordingFeed"]
