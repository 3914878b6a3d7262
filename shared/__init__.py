"""
Shared utilities for streamstats.

This module provides the partition layout used by:
- streamstats.stream (partition sources and their identifiers)
- streamstats.parallel (the reducer's partition reports)
- scripts/ (discovering and writing partitions on disk)
"""

from shared.partitioning import (
    PROHIBITED_PATH_CHARS,
    SHARD_COLUMN,
    build_partition_path,
    discover_partitions,
    format_partition_value,
    parse_partition_path,
    partition_id_for,
    sanitize_partition_value,
    split_sequence,
    write_shards,
)

__all__ = [
    "PROHIBITED_PATH_CHARS",
    "SHARD_COLUMN",
    "build_partition_path",
    "discover_partitions",
    "format_partition_value",
    "parse_partition_path",
    "partition_id_for",
    "sanitize_partition_value",
    "split_sequence",
    "write_shards",
]
