from __future__ import annotations

import logging
import math
from typing import Optional

from .models import LocationSnapshot

logger = logging.getLogger(__name__)


class LocationCache:
    """Holds the most recent location fix; every update replaces the previous one.

    A fix whose timestamp is not a finite number is logged and ignored, and
    the previous fix stays current.
    """

    def __init__(self) -> None:
        self._snapshot: Optional[LocationSnapshot] = None

    def update(self, snapshot: LocationSnapshot) -> bool:
        if not math.isfinite(snapshot.fix_timestamp):
            logger.warning("Ignoring location fix with timestamp %r", snapshot.fix_timestamp)
            return False
        self._snapshot = snapshot
        return True

    def current(self) -> Optional[LocationSnapshot]:
        return self._snapshot

    def clear(self) -> None:
        self._snapshot = None

    def __bool__(self) -> bool:
        return self._snapshot is not None


__all__ = ["LocationCache"]
