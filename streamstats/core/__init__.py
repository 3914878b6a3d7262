"""
Streaming Statistics Core
=========================

The core contracts shared by every aggregate:
- Aggregate: Abstract base class (update / merge / compute / snapshot)
- merge: Pure merge of two aggregates into a new one
- AggregateRegistry: Create aggregates by name, restore them from snapshots
- Error taxonomy and enums
"""

from streamstats.core.enums import (
    AggregateKind,
    ParsePolicy,
    SourceFormat,
    WorkerStatus,
)
from streamstats.core.errors import (
    AggregateMergeError,
    EmptyAggregateError,
    InvalidPercentileError,
    ParseError,
    PartitionFailedError,
    PartitionReadError,
    StreamStatsError,
    UnknownAggregateError,
)
from streamstats.core.base import Aggregate, Snapshot, Updatable, merge
from streamstats.core.registry import (
    AggregateRegistry,
    get_registry,
    register_aggregate,
)

__all__ = [
    # Enums
    "AggregateKind",
    "ParsePolicy",
    "SourceFormat",
    "WorkerStatus",
    # Errors
    "StreamStatsError",
    "EmptyAggregateError",
    "InvalidPercentileError",
    "ParseError",
    "PartitionReadError",
    "AggregateMergeError",
    "UnknownAggregateError",
    "PartitionFailedError",
    # Base
    "Aggregate",
    "Snapshot",
    "Updatable",
    "merge",
    # Registry
    "AggregateRegistry",
    "get_registry",
    "register_aggregate",
]
