"""Storage sinks for fused batches.

Sinks are append-only and opaque to the pipeline: they receive a table name
plus a list of flat rows and either succeed or raise. :class:`BatchDispatcher`
sends batches without waiting and logs the outcome.
"""

from .base import BatchDispatcher, Row, SinkError, TableSink
from .files import CsvTableSink, JsonlTableSink
from .memory import MemorySink

SINK_FORMATS = {
    "csv": CsvTableSink,
    "jsonl": JsonlTableSink,
}

__all__ = [
    "BatchDispatcher",
    "Row",
    "SinkError",
    "TableSink",
    "CsvTableSink",
    "JsonlTableSink",
    "MemorySink",
    "SINK_FORMATS",
]
