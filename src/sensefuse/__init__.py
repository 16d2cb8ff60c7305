"""SenseFuse: buffered accelerometer/gyroscope/location fusion.

Two motion streams are time-aligned, joined with the latest location fix and
written in batches to an append-only table sink.
"""

from .config import FusionConfig, load_config
from .core.session import PERMISSION_DENIED_MESSAGE, PERMISSION_DENIED_TITLE, FusionSession

__all__ = [
    "FusionConfig",
    "load_config",
    "FusionSession",
    "PERMISSION_DENIED_MESSAGE",
    "PERMISSION_DENIED_TITLE",
]
