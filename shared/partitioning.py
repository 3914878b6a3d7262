"""
Partitioning utilities for streamstats.

Provides the partition layout shared by the stream sources, the parallel
reducer and the command-line script, so that partition identifiers are the
same wherever they are reported.

Directory Layout:
    Partitions are plain files. They may sit directly in a directory or in
    Hive-style partition directories:

    values/shard=0000/values.txt
    values/shard=0001/values.txt
    values/host=web-1/day=2025-06-19/latency.parquet

    A partition's identifier is its path relative to the discovery root,
    with forward slashes, so it is stable across machines and platforms.

Usage:
    from shared.partitioning import (
        discover_partitions,
        split_sequence,
        write_shards,
    )

    # Split an in-memory sequence into 4 contiguous chunks
    chunks = split_sequence(values, 4)

    # Write 4 text shards and find them again
    write_shards(values, "/data/values", num_shards=4)
    paths = discover_partitions("/data/values", pattern="*.txt", recursive=True)
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Constants
# =============================================================================

# Partition column used by write_shards
SHARD_COLUMN = "shard"

# Default file name inside each shard directory
SHARD_FILE_NAME = "values.txt"

# Characters that are prohibited in filesystem paths (replaced with -)
# Covers Windows, Linux, macOS, and S3 key restrictions
PROHIBITED_PATH_CHARS = re.compile(r'[/\\:*?"<>|]')

# Integer partition columns that get zero-padded to this width
ZERO_PAD_WIDTHS = {SHARD_COLUMN: 4}


# =============================================================================
# Sanitization Functions
# =============================================================================

def sanitize_partition_value(value: Any) -> str:
    """
    Sanitize a partition value for filesystem compatibility.

    Replaces prohibited characters (/, \\, :, *, ?, ", <, >, |) with -.

    Args:
        value: The raw partition value (will be converted to string)

    Returns:
        Sanitized string safe for filesystem paths

    Examples:
        >>> sanitize_partition_value("web/1")
        'web-1'
        >>> sanitize_partition_value(2024)
        '2024'
        >>> sanitize_partition_value(None)
        'unknown'
    """
    str_value = str(value) if value is not None else "unknown"
    return PROHIBITED_PATH_CHARS.sub("-", str_value)


def format_partition_value(col: str, value: Any, zero_pad: bool = True) -> str:
    """
    Format a partition value with optional zero-padding for integer columns.

    Examples:
        >>> format_partition_value("shard", 3)
        '0003'
        >>> format_partition_value("shard", 3, zero_pad=False)
        '3'
        >>> format_partition_value("host", "web/1")
        'web-1'
    """
    sanitized = sanitize_partition_value(value)

    width = ZERO_PAD_WIDTHS.get(col)
    if zero_pad and width:
        try:
            return f"{int(sanitized):0{width}d}"
        except (ValueError, TypeError):
            pass

    return sanitized


# =============================================================================
# Path Building
# =============================================================================

def build_partition_path(
    base_path: Union[str, Path],
    partition_cols: List[str],
    partition_values: Union[Tuple[Any, ...], Dict[str, Any]],
    zero_pad: bool = True,
) -> Path:
    """
    Build a Hive-style partition path from column names and values.

    Args:
        base_path: Base directory path
        partition_cols: List of partition column names in order
        partition_values: Tuple of values (same order as cols) or dict
        zero_pad: Whether to zero-pad integer columns such as ``shard``

    Returns:
        Full partition path as Path object

    Examples:
        >>> build_partition_path("/data", ["host", "shard"], ("web/1", 2))
        PosixPath('/data/host=web-1/shard=0002')
    """
    base = Path(base_path)

    if isinstance(partition_values, dict):
        values = tuple(partition_values.get(col) for col in partition_cols)
    else:
        values = partition_values

    if len(partition_cols) != len(values):
        raise ValueError(
            f"Mismatch: {len(partition_cols)} columns but {len(values)} values"
        )

    parts = []
    for col, val in zip(partition_cols, values):
        parts.append(f"{col}={format_partition_value(col, val, zero_pad=zero_pad)}")

    return base / "/".join(parts)


def parse_partition_path(
    path: Union[str, Path],
    partition_cols: Optional[List[str]] = None,
) -> Dict[str, str]:
    """
    Parse partition values from a Hive-style path.

    Args:
        path: Path containing partition directories
        partition_cols: Expected partition columns (for validation)

    Returns:
        Dictionary of partition column -> value

    Examples:
        >>> parse_partition_path("values/host=web-1/shard=0002/values.txt")
        {'host': 'web-1', 'shard': '0002'}
    """
    path_str = str(path)
    parts = path_str.replace("\\", "/").split("/")

    result = {}
    for part in parts:
        if "=" in part:
            col, val = part.split("=", 1)
            result[col] = val

    if partition_cols:
        missing = set(partition_cols) - set(result.keys())
        if missing:
            raise ValueError(f"Missing partition columns in path: {missing}")

    return result


def partition_id_for(path: Union[str, Path], root: Optional[Union[str, Path]] = None) -> str:
    """
    Stable identifier for a partition file.

    The path relative to ``root`` (or the path itself when it is not under
    root), always with forward slashes.
    """
    p = Path(path)
    if root is not None:
        try:
            p = p.relative_to(root)
        except ValueError:
            pass
    return p.as_posix()


# =============================================================================
# Discovery
# =============================================================================

def discover_partitions(
    base_path: Union[str, Path],
    pattern: str = "*.txt",
    recursive: bool = True,
) -> List[Path]:
    """
    Find partition files under a directory.

    Args:
        base_path: Directory to search (a single file is returned as-is)
        pattern: Glob pattern for partition files
        recursive: Whether to descend into subdirectories

    Returns:
        Sorted list of partition file paths

    Raises:
        FileNotFoundError: If base_path does not exist
    """
    base = Path(base_path)
    if not base.exists():
        raise FileNotFoundError(f"Partition root not found: {base}")
    if base.is_file():
        return [base]

    matches = base.rglob(pattern) if recursive else base.glob(pattern)
    paths = sorted(p for p in matches if p.is_file())
    logger.debug(f"Discovered {len(paths)} partitions under {base} matching {pattern}")
    return paths


# =============================================================================
# Splitting
# =============================================================================

def split_sequence(values: Sequence[T], num_partitions: int) -> List[Sequence[T]]:
    """
    Split a sequence into contiguous, nearly equal chunks.

    The first ``len(values) % num_partitions`` chunks get one extra element.
    Chunks may be empty when there are fewer values than partitions.

    Examples:
        >>> split_sequence([0, 1, 2, 3, 4], 2)
        [[0, 1, 2], [3, 4]]
    """
    if num_partitions < 1:
        raise ValueError("num_partitions must be >= 1")

    size, extra = divmod(len(values), num_partitions)
    chunks = []
    start = 0
    for i in range(num_partitions):
        end = start + size + (1 if i < extra else 0)
        chunks.append(values[start:end])
        start = end
    return chunks


def write_shards(
    values: Sequence[Any],
    base_path: Union[str, Path],
    num_shards: int,
    file_name: str = SHARD_FILE_NAME,
) -> List[Path]:
    """
    Write values as text shards, one value per line.

    Creates ``base_path/shard=NNNN/<file_name>`` for each shard.

    Returns:
        Paths of the written shard files, in shard order
    """
    written = []
    for shard, chunk in enumerate(split_sequence(values, num_shards)):
        shard_dir = build_partition_path(base_path, [SHARD_COLUMN], (shard,))
        shard_dir.mkdir(parents=True, exist_ok=True)
        path = shard_dir / file_name
        with open(path, "w", encoding="utf-8") as f:
            for value in chunk:
                f.write(f"{value}\n")
        written.append(path)

    logger.info(f"Wrote {len(values)} values to {num_shards} shards under {base_path}")
    return written
