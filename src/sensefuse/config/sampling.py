"""Motion update-rate presets and helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class RateMode:
    """User-facing update-rate preset for both motion sources."""

    key: str
    label: str
    interval_ms: int

    @property
    def rate_hz(self) -> float:
        return 1000.0 / self.interval_ms


RATE_MODES: Dict[str, RateMode] = {
    "slow": RateMode(key="slow", label="Slow (~1 Hz)", interval_ms=1000),
    "fast": RateMode(key="fast", label="Fast (~60 Hz)", interval_ms=16),
}

DEFAULT_RATE_MODE = "fast"

_ALIASES = {
    "1hz": "slow",
    "low": "slow",
    "60hz": "fast",
    "high": "fast",
}


def normalize_rate_mode(value: object, default: str = DEFAULT_RATE_MODE) -> str:
    """
    Map user input onto a key of :data:`RATE_MODES`.

    Matching is case-insensitive and accepts a few aliases; anything unknown
    falls back to ``default``.
    """
    raw = str(value or default).strip().lower().replace("-", "_").replace(" ", "")
    raw = _ALIASES.get(raw, raw)
    return raw if raw in RATE_MODES else default


def resolve_rate_mode(value: object) -> RateMode:
    """Return the preset for ``value``; raise ``ValueError`` for unknown names."""
    raw = str(value).strip().lower().replace("-", "_").replace(" ", "")
    key = _ALIASES.get(raw, raw)
    try:
        return RATE_MODES[key]
    except KeyError:
        known = ", ".join(sorted(RATE_MODES))
        raise ValueError(f"Unknown rate mode {value!r}; expected one of: {known}") from None


def hz_to_interval_ms(value_hz: float, fallback_ms: int) -> int:
    """Convert a frequency in Hz into a positive integer interval in ms."""
    try:
        hz = float(value_hz)
    except (TypeError, ValueError):
        hz = 0.0
    if hz <= 0.0 or math.isnan(hz) or math.isinf(hz):
        return max(1, int(fallback_ms))
    interval = int(round(1000.0 / hz))
    return max(1, interval)


__all__ = [
    "RateMode",
    "RATE_MODES",
    "DEFAULT_RATE_MODE",
    "normalize_rate_mode",
    "resolve_rate_mode",
    "hz_to_interval_ms",
]
