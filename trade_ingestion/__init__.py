"""Incremental, resumable ingestion of exchange trade executions."""

from .cursor import CursorState, OrdinalCursor, PaginatedCursor, TimestampCursor
from .engine import Engine
from .errors import (
    BoundaryOverflowError,
    ConversionError,
    EmptyPageError,
    IngestionError,
    RecorderError,
    StateParseError,
    TransportError,
    WriteError,
)
from .models import RunStats, Trade
from .recorders import FileRecorder, MemoryRecorder, ProgressRecorder
from .writers import StdoutWriter, Writer

__all__ = [
    "BoundaryOverflowError",
    "ConversionError",
    "CursorState",
    "EmptyPageError",
    "Engine",
    "FileRecorder",
    "IngestionError",
    "MemoryRecorder",
    "OrdinalCursor",
    "PaginatedCursor",
    "ProgressRecorder",
    "RecorderError",
    "RunStats",
    "StateParseError",
    "StdoutWriter",
    "TimestampCursor",
    "Trade",
    "TransportError",
    "WriteError",
    "Writer",
]
