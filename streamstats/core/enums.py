"""
Enums for Streaming Statistics
==============================

Type-safe enumerations for aggregate kinds, source formats and worker states.
Eliminates hardcoded strings throughout the codebase.
"""

from enum import Enum


class AggregateKind(str, Enum):
    """
    Built-in aggregate kinds.

    The value doubles as the registry name and as the ``kind`` field
    of a serialized snapshot.
    """
    MEAN = "mean"
    VARIANCE = "variance"
    MAX = "max"
    MIN = "min"
    PERCENTILE = "percentile"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


class SourceFormat(str, Enum):
    """
    Partition file formats.

    - TEXT: one value per line
    - PARQUET / CSV / NDJSON: a single numeric column read with polars
    """
    TEXT = "text"
    PARQUET = "parquet"
    CSV = "csv"
    NDJSON = "ndjson"

    def __str__(self) -> str:
        return self.value


class ParsePolicy(str, Enum):
    """
    What a source does with a value it cannot parse.

    - ABORT: raise ParseError, ending the partition's contribution
    - SKIP: log the value, count it, and continue
    """
    ABORT = "abort"
    SKIP = "skip"

    def __str__(self) -> str:
        return self.value


class WorkerStatus(str, Enum):
    """Terminal state of a partition worker."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value
