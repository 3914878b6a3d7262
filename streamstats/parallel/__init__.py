"""
Parallel Module
===============

Combining partial aggregates:
- reducer: map-reduce over partitions with a thread pool
- collector: merge snapshot deltas shipped by remote workers
"""

from .collector import SnapshotCollector, drain_delta
from .reducer import AggregateSpec, ParallelReducer, PartitionResult, ReduceResult

__all__ = [
    "ParallelReducer",
    "PartitionResult",
    "ReduceResult",
    "AggregateSpec",
    "SnapshotCollector",
    "drain_delta",
]
