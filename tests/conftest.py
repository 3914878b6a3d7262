"""
Pytest configuration and fixtures for all tests.
"""
import pytest

from shared.partitioning import write_shards
from streamstats.core.registry import AggregateRegistry, register_builtin_aggregates


@pytest.fixture
def temp_dir(tmp_path):
    """
    Provide a temporary directory for tests.

    This wraps pytest's built-in tmp_path fixture.
    """
    return tmp_path


@pytest.fixture
def registry():
    """Fresh registry with the built-in aggregates, isolated from the global one."""
    return register_builtin_aggregates(AggregateRegistry())


@pytest.fixture
def sample_values():
    """Deterministic, mildly irregular float sequence."""
    return [((i * 37) % 101) / 7.0 - 3.5 for i in range(500)]


@pytest.fixture
def median_values():
    """Sequence with repeated values for percentile tests."""
    return [1, 2, 2, 3, 4, 4, 4, 5]


@pytest.fixture
def shard_dir(tmp_path, sample_values):
    """Four text shards holding sample_values."""
    root = tmp_path / "values"
    write_shards(sample_values, root, num_shards=4)
    return root
