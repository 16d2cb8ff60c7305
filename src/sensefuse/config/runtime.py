"""Runtime configuration for the fusion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .sampling import DEFAULT_RATE_MODE, normalize_rate_mode

LOCATION_ACCURACY_LEVELS = ("lowest", "low", "balanced", "high", "highest", "navigation")


@dataclass(slots=True)
class FusionConfig:
    """
    Tuning knobs for buffering, alignment and storage.

    The defaults reproduce the reference pipeline: 50 ms pairing tolerance,
    flushes once both motion buffers reach 100 samples, rows stored in the
    ``data`` table and location fixes requested once per second.
    """

    tolerance_ms: float = 50.0
    flush_threshold: int = 100
    table_name: str = "data"
    rate_mode: str = DEFAULT_RATE_MODE

    location_accuracy: str = "high"
    location_interval_ms: int = 1000
    location_distance_m: float = 0.0

    # Log a warning once this many motion samples wait for a first fix.
    stall_warning_samples: Optional[int] = 10_000

    def sanitized(self) -> FusionConfig:
        """Return a copy with derived limits applied."""
        accuracy = str(self.location_accuracy).strip().lower()
        if accuracy not in LOCATION_ACCURACY_LEVELS:
            accuracy = "high"
        stall = self.stall_warning_samples
        if stall is not None:
            stall = max(1, int(stall))
        table = str(self.table_name).strip() or "data"
        return FusionConfig(
            tolerance_ms=max(0.0, float(self.tolerance_ms)),
            flush_threshold=max(1, int(self.flush_threshold)),
            table_name=table,
            rate_mode=normalize_rate_mode(self.rate_mode),
            location_accuracy=accuracy,
            location_interval_ms=max(1, int(self.location_interval_ms)),
            location_distance_m=max(0.0, float(self.location_distance_m)),
            stall_warning_samples=stall,
        )


_FIELD_NAMES = frozenset(f.name for f in fields(FusionConfig))
_SECTION = "fusion"


def config_from_mapping(data: Mapping[str, Any] | None) -> FusionConfig:
    """
    Build a :class:`FusionConfig` from parsed YAML.

    Keys may sit at the top level or inside a ``fusion:`` block; the block
    wins when both are present. Unknown keys are ignored. Values are taken
    as-is; :meth:`FusionConfig.sanitized` is applied by the session that
    consumes the config.
    """
    if not data:
        return FusionConfig()
    section = data.get(_SECTION)
    values = {k: v for k, v in data.items() if k in _FIELD_NAMES}
    if isinstance(section, Mapping):
        values.update((k, v) for k, v in section.items() if k in _FIELD_NAMES)
    return FusionConfig(**values)


def load_config(path: str | Path | None) -> FusionConfig:
    """Read ``path`` as YAML; a missing path or file yields the defaults."""
    if path is None or not Path(path).exists():
        return FusionConfig()
    cfg_path = Path(path)
    raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
    if raw is None:
        return FusionConfig()
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


def save_config(path: str | Path, cfg: FusionConfig) -> None:
    """Persist ``cfg`` as YAML under a top-level ``fusion`` block."""
    cfg_path = Path(path)
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    data = {_SECTION: {f.name: getattr(cfg, f.name) for f in fields(FusionConfig)}}
    cfg_path.write_text(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), encoding="utf-8")


__all__ = ["FusionConfig", "LOCATION_ACCURACY_LEVELS", "config_from_mapping", "load_config", "save_config"]
