"""Push-event sources feeding a fusion session.

The protocols in :mod:`base` describe what a session needs from motion and
location providers. :mod:`simulated` drives synthetic streams from the asyncio
loop and :mod:`replay` pushes a recorded event log through the same
interfaces.
"""

from .base import (
    ListenerHandle,
    ListenerRegistry,
    LocationRequest,
    LocationSource,
    MotionSource,
    PermissionStatus,
    Subscription,
)
from .replay import RecordingFeed, format_event, parse_event
from .simulated import SimulatedLocationSource, SimulatedMotionSource

__all__ = [
    "ListenerHandle",
    "ListenerRegistry",
    "LocationRequest",
    "LocationSource",
    "MotionSource",
    "PermissionStatus",
    "Subscription",
    "RecordingFeed",
    "format_event",
    "parse_event",
    "SimulatedLocationSource",
    "SimulatedMotionSource",
]
