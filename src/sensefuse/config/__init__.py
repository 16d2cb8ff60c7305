"""Configuration objects and helpers for SenseFuse.

This package knows how to load/save the YAML file that tunes a fusion session:
- pairing tolerance, flush threshold and target table (:mod:`runtime`)
- the slow/fast motion update-rate presets (:mod:`sampling`)
The resulting typed dataclasses are what the session, the CLI and the tests
pass around.
"""

from .runtime import FusionConfig, config_from_mapping, load_config, save_config
from .sampling import RATE_MODES, RateMode, normalize_rate_mode, resolve_rate_mode

__all__ = [
    "FusionConfig",
    "config_from_mapping",
    "load_config",
    "save_config",
    "RATE_MODES",
    "RateMode",
    "normalize_rate_mode",
    "resolve_rate_mode",
]
