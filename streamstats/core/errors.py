"""
Exceptions raised by the streaming statistics engine.

Caller-input errors (empty aggregate, bad percentile, incompatible merge)
are raised synchronously. Partition errors (parse, read) are raised inside
a worker and reported to the reducer with the partition they came from.
"""

from typing import Any, Dict, Optional


class StreamStatsError(Exception):
    """Base exception for all streaming statistics errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class EmptyAggregateError(StreamStatsError, ValueError):
    """Raised when a statistic is requested before any update."""

    def __init__(self, aggregate: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"No data: {aggregate} has no observations", details)
        self.aggregate = aggregate


class InvalidPercentileError(StreamStatsError, ValueError):
    """Raised when a percentile outside [0, 100] is queried."""

    def __init__(self, percentile: Any):
        super().__init__(f"Invalid percentile {percentile!r}: must be within [0, 100]")
        self.percentile = percentile


class ParseError(StreamStatsError, ValueError):
    """Raised when a source value cannot be converted to the expected type."""

    def __init__(
        self,
        partition_id: str,
        value: Any,
        line_number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        location = f" at line {line_number}" if line_number is not None else ""
        super().__init__(
            f"Cannot parse value {value!r} in partition '{partition_id}'{location}",
            details,
        )
        self.partition_id = partition_id
        self.value = value
        self.line_number = line_number


class PartitionReadError(StreamStatsError):
    """Raised when a partition's underlying data segment is inaccessible."""

    def __init__(self, partition_id: str, reason: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Cannot read partition '{partition_id}': {reason}", details)
        self.partition_id = partition_id
        self.reason = reason


class AggregateMergeError(StreamStatsError, TypeError):
    """Raised when two aggregates of different kinds are merged."""

    def __init__(self, left: str, right: str):
        super().__init__(f"Cannot merge {right} into {left}")
        self.left = left
        self.right = right


class UnknownAggregateError(StreamStatsError, KeyError):
    """Raised when an aggregate name is not registered."""

    def __init__(self, name: str, available: list):
        super().__init__(
            f"Aggregate '{name}' is not registered. Available aggregates: {available}"
        )
        self.name = name
        self.available = available

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class PartitionFailedError(StreamStatsError):
    """Raised by ReduceResult.raise_for_failures() when any partition failed."""

    def __init__(self, failures: list):
        ids = ", ".join(str(f.partition_id) for f in failures)
        super().__init__(f"{len(failures)} partition(s) failed: {ids}")
        self.failures = failures
