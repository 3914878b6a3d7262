"""streamstats - Constant-memory streaming statistics with map-reduce merging."""

__version__ = "0.1.0"
__license__ = "MIT"

from streamstats.core import (
    Aggregate,
    AggregateMergeError,
    EmptyAggregateError,
    InvalidPercentileError,
    ParseError,
    PartitionFailedError,
    PartitionReadError,
    StreamStatsError,
    UnknownAggregateError,
    get_registry,
    merge,
    register_aggregate,
)
from streamstats.aggregates import (
    CustomAggregate,
    PercentileEstimator,
    RunningMax,
    RunningMean,
    RunningMin,
    RunningVariance,
)
from streamstats.stream import StreamDriver, TextLineSource
from streamstats.parallel import ParallelReducer, SnapshotCollector

__all__ = [
    "__version__",
    "Aggregate",
    "merge",
    "get_registry",
    "register_aggregate",
    "RunningMean",
    "RunningVariance",
    "RunningMax",
    "RunningMin",
    "PercentileEstimator",
    "CustomAggregate",
    "StreamDriver",
    "TextLineSource",
    "ParallelReducer",
    "SnapshotCollector",
    "StreamStatsError",
    "EmptyAggregateError",
    "InvalidPercentileError",
    "ParseError",
    "PartitionReadError",
    "AggregateMergeError",
    "UnknownAggregateError",
    "PartitionFailedError",
]
