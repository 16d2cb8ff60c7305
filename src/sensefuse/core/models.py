"""Shared dataclasses for motion samples, location fixes and fused rows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

FUSED_COLUMNS: tuple[str, ...] = (
    "accel_x",
    "accel_y",
    "accel_z",
    "accel_timestamp",
    "gyro_x",
    "gyro_y",
    "gyro_z",
    "gyro_timestamp",
    "latitude",
    "longitude",
    "altitude",
    "location_timestamp",
    "location_accuracy",
)


def _millis(value: float) -> int:
    return int(round(float(value)))


@dataclass(frozen=True, slots=True)
class MotionSample:
    """One accelerometer or gyroscope reading; ``timestamp`` is in milliseconds."""

    x: float
    y: float
    z: float
    timestamp: float


@dataclass(frozen=True, slots=True)
class LocationSnapshot:
    latitude: float
    longitude: float
    altitude: float
    fix_timestamp: float
    accuracy: Optional[float] = None

    @classmethod
    def from_fix(
        cls,
        latitude: float,
        longitude: float,
        timestamp: float,
        *,
        altitude: float | None = None,
        accuracy: float | None = None,
    ) -> "LocationSnapshot":
        """
        Normalise a raw location fix.

        Providers report ``None`` for altitude and accuracy when they do not
        know them; altitude falls back to ``0.0`` while accuracy stays absent.
        Non-finite numbers raise ``ValueError``.
        """
        values = (latitude, longitude, timestamp, altitude, accuracy)
        if not all(v is None or math.isfinite(float(v)) for v in values):
            raise ValueError(f"non-finite value in location fix: {values!r}")
        return cls(
            latitude=float(latitude),
            longitude=float(longitude),
            altitude=float(altitude) if altitude is not None else 0.0,
            fix_timestamp=float(timestamp),
            accuracy=float(accuracy) if accuracy is not None else None,
        )


@dataclass(frozen=True, slots=True)
class AlignedPair:
    accel: MotionSample
    gyro: MotionSample

    @property
    def alignment_error_ms(self) -> float:
        return abs(self.accel.timestamp - self.gyro.timestamp)


@dataclass(frozen=True, slots=True)
class FusedRecord:
    """An aligned motion pair joined with the location snapshot current at flush time."""

    pair: AlignedPair
    location: LocationSnapshot

    def as_row(self) -> Dict[str, Any]:
        """Flatten into the persisted column layout (see :data:`FUSED_COLUMNS`)."""
        accel = self.pair.accel
        gyro = self.pair.gyro
        loc = self.location
        return {
            "accel_x": float(accel.x),
            "accel_y": float(accel.y),
            "accel_z": float(accel.z),
            "accel_timestamp": _millis(accel.timestamp),
            "gyro_x": float(gyro.x),
            "gyro_y": float(gyro.y),
            "gyro_z": float(gyro.z),
            "gyro_timestamp": _millis(gyro.timestamp),
            "latitude": float(loc.latitude),
            "longitude": float(loc.longitude),
            "altitude": float(loc.altitude),
            "location_timestamp": _millis(loc.fix_timestamp),
            "location_accuracy": loc.accuracy,
        }


__all__ = [
    "FUSED_COLUMNS",
    "MotionSample",
    "LocationSnapshot",
    "AlignedPair",
    "FusedRecord",
]
