from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import Row, SinkError


@dataclass
class MemorySink:
    """In-process sink used by tests and demos.

    ``gate`` holds every insert until the event is set; ``fail_with`` makes
    inserts raise :class:`SinkError` with that message.
    """

    gate: Optional[asyncio.Event] = None
    fail_with: Optional[str] = None
    batches: List[Tuple[str, List[Row]]] = field(default_factory=list)
    attempts: int = 0

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None:
        self.attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise SinkError(self.fail_with)
        self.batches.append((table, [dict(row) for row in rows]))

    def rows(self, table: str | None = None) -> List[Dict[str, Any]]:
        """Return all stored rows, optionally for one table only."""
        out: List[Dict[str, Any]] = []
        for name, batch in self.batches:
            if table is None or name == table:
                out.extend(batch)
        return out
