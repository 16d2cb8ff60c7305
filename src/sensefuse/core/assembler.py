from __future__ import annotations

from typing import Iterable, List, Optional

from .models import AlignedPair, FusedRecord, LocationSnapshot


def assemble(pairs: Iterable[AlignedPair], snapshot: Optional[LocationSnapshot]) -> List[FusedRecord]:
    """
    Join aligned motion pairs with a location snapshot.

    Without a snapshot nothing is produced; partial records never leave here.
    """
    if snapshot is None:
        return []
    return [FusedRecord(pair=pair, location=snapshot) for pair in pairs]


__all__ = ["assemble"]
