"""File-backed table sinks writing one file per table."""

from __future__ import annotations

import asyncio
import csv
import json
import logging
from pathlib import Path
from typing import Any, Mapping, Sequence

from ..core.models import FUSED_COLUMNS
from .base import SinkError

logger = logging.getLogger(__name__)


def append_rows(path: Path, headers: Sequence[str], rows: Sequence[Mapping[str, Any]]) -> None:
    """
    Append rows to a CSV file, writing the header only when the file is new.

    Directories are created as needed. Missing values are written as empty
    fields.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    new_file = not path.exists() or path.stat().st_size == 0
    with path.open("a", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=list(headers), extrasaction="ignore")
        if new_file:
            writer.writeheader()
        writer.writerows(rows)


def append_jsonl(path: Path, rows: Sequence[Mapping[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        for row in rows:
            fh.write(json.dumps(dict(row)) + "\n")


class CsvTableSink:
    """Stores each table as ``<out_dir>/<table>.csv``."""

    suffix = ".csv"

    def __init__(self, out_dir: str | Path, headers: Sequence[str] = FUSED_COLUMNS) -> None:
        self.out_dir = Path(out_dir)
        self.headers = tuple(headers)

    def path_for(self, table: str) -> Path:
        return self.out_dir / f"{table}{self.suffix}"

    def _write(self, path: Path, rows: Sequence[Mapping[str, Any]]) -> None:
        append_rows(path, self.headers, rows)

    async def insert(self, table: str, rows: Sequence[Mapping[str, Any]]) -> None:
        path = self.path_for(table)
        try:
            # Keep disk I/O off the event loop thread.
            await asyncio.to_thread(self._write, path, list(rows))
        except OSError as exc:
            raise SinkError(f"could not write {path}: {exc}") from exc
        logger.debug("Appended %d rows to %s", len(rows), path)


class JsonlTableSink(CsvTableSink):
    """Stores each table as ``<out_dir>/<table>.jsonl`` with one object per row."""

    suffix = ".jsonl"

    def _write(self, path: Path, rows: Sequence[Mapping[str, Any]]) -> None:
        append_jsonl(path, rows)


__all__ = ["append_rows", "append_jsonl", "CsvTableSink", "JsonlTableSink"]
