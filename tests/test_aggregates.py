"""
Unit tests for streaming aggregates.

Tests the following modules:
- streamstats/aggregates/moments.py - RunningMean, RunningVariance
- streamstats/aggregates/extrema.py - RunningMax, RunningMin
- streamstats/aggregates/custom.py - CustomAggregate

Batch reference values come from numpy.
"""
import json
import math
import random

import numpy as np
import pytest

from streamstats.aggregates import (
    CompensatedSum,
    CustomAggregate,
    RunningMax,
    RunningMean,
    RunningMin,
    RunningVariance,
)
from streamstats.core.base import merge
from streamstats.core.errors import AggregateMergeError, EmptyAggregateError, StreamStatsError


def _fill(aggregate, values):
    for x in values:
        aggregate.update(x)
    return aggregate


# =============================================================================
# RunningMean
# =============================================================================

class TestRunningMean:
    """Tests for the running mean."""

    def test_known_sequence(self):
        """Mean of 0..4 is 2.0."""
        mean = _fill(RunningMean(), [0, 1, 2, 3, 4])

        assert mean.compute() == pytest.approx(2.0)
        assert mean.count == 5
        assert mean.sum == pytest.approx(10.0)

    def test_update_returns_current_mean(self):
        mean = RunningMean()

        assert mean.update(4.0) == pytest.approx(4.0)
        assert mean.update(2.0) == pytest.approx(3.0)
        assert mean.update(0.0) == pytest.approx(2.0)

    def test_matches_batch_mean(self, sample_values):
        mean = _fill(RunningMean(), sample_values)

        assert mean.compute() == pytest.approx(np.mean(sample_values), rel=1e-12)

    def test_empty_raises(self):
        """compute() before any update is a 'no data' error."""
        with pytest.raises(EmptyAggregateError):
            RunningMean().compute()

    def test_empty_error_is_value_error(self):
        with pytest.raises(ValueError):
            RunningMean().value

    def test_integers_are_folded_as_floats(self):
        mean = _fill(RunningMean(), [1, 2])

        assert isinstance(mean.compute(), float)


# =============================================================================
# RunningVariance
# =============================================================================

class TestRunningVariance:
    """Tests for the running population variance."""

    def test_known_sequence(self):
        """Population variance of 0..4 is 2.0."""
        var = _fill(RunningVariance(), [0, 1, 2, 3, 4])

        assert var.compute() == pytest.approx(2.0)
        assert var.mean == pytest.approx(2.0)
        assert var.sum_squares == pytest.approx(30.0)

    def test_single_value_has_zero_variance(self):
        var = RunningVariance()

        assert var.update(42.0) == 0.0
        assert var.sample_variance == 0.0

    def test_update_returns_current_variance(self):
        var = RunningVariance()
        var.update(1.0)

        assert var.update(3.0) == pytest.approx(1.0)

    def test_matches_batch_variance(self, sample_values):
        var = _fill(RunningVariance(), sample_values)

        assert var.compute() == pytest.approx(np.var(sample_values), rel=1e-9)
        assert var.std == pytest.approx(np.std(sample_values), rel=1e-9)
        assert var.sample_variance == pytest.approx(np.var(sample_values, ddof=1), rel=1e-9)

    def test_empty_raises(self):
        var = RunningVariance()

        with pytest.raises(EmptyAggregateError):
            var.compute()
        with pytest.raises(EmptyAggregateError):
            var.mean

    def test_never_negative(self):
        """Rounding cannot push the variance below zero."""
        var = _fill(RunningVariance(), [0.1] * 1000)

        assert var.compute() >= 0.0
        assert var.compute() == pytest.approx(0.0, abs=1e-12)


# =============================================================================
# Merge laws
# =============================================================================

class TestMerge:
    """Merging partial aggregates equals aggregating the union."""

    def test_two_halves_equal_whole(self):
        """[0..4] merged with [5..9] equals [0..9] directly."""
        left = _fill(RunningVariance(), range(5))
        right = _fill(RunningVariance(), range(5, 10))
        whole = _fill(RunningVariance(), range(10))

        left.merge(right)

        assert left.count == whole.count == 10
        assert left.compute() == pytest.approx(whole.compute())
        assert left.compute() == pytest.approx(8.25)
        assert left.mean == pytest.approx(4.5)

    def test_merge_leaves_other_untouched(self):
        left = _fill(RunningMean(), [1.0, 2.0])
        right = _fill(RunningMean(), [10.0])

        left.merge(right)

        assert right.count == 1
        assert right.compute() == pytest.approx(10.0)

    def test_merge_returns_self(self):
        left = RunningMean()

        assert left.merge(RunningMean()) is left

    def test_pure_merge_mutates_neither(self):
        a = _fill(RunningVariance(), [1.0, 2.0, 3.0])
        b = _fill(RunningVariance(), [4.0, 5.0])

        c = merge(a, b)

        assert c is not a and c is not b
        assert a.count == 3 and b.count == 2
        assert c.compute() == pytest.approx(np.var([1, 2, 3, 4, 5]))

    def test_commutative(self, sample_values):
        a = _fill(RunningVariance(), sample_values[:123])
        b = _fill(RunningVariance(), sample_values[123:])

        assert merge(a, b).compute() == pytest.approx(merge(b, a).compute(), rel=1e-12)

    def test_associative(self, sample_values):
        a = _fill(RunningVariance(), sample_values[:100])
        b = _fill(RunningVariance(), sample_values[100:250])
        c = _fill(RunningVariance(), sample_values[250:])

        left = merge(merge(a, b), c)
        right = merge(a, merge(b, c))

        assert left.count == right.count
        assert left.compute() == pytest.approx(right.compute(), rel=1e-12)
        assert left.mean == pytest.approx(right.mean, rel=1e-12)

    def test_identity(self, sample_values):
        a = _fill(RunningVariance(), sample_values)

        merged = merge(a, RunningVariance())

        assert merged.count == a.count
        assert merged.compute() == pytest.approx(a.compute())

    def test_arbitrary_partitioning(self, sample_values):
        """Any split into any number of arbitrary subsets merges to the whole."""
        rng = random.Random(7)
        whole = _fill(RunningVariance(), sample_values)

        for num_parts in (2, 3, 7, 50):
            parts = [RunningVariance() for _ in range(num_parts)]
            for x in sample_values:
                parts[rng.randrange(num_parts)].update(x)
            rng.shuffle(parts)

            merged = RunningVariance()
            for part in parts:
                merged.merge(part)

            assert merged.count == whole.count
            assert merged.compute() == pytest.approx(whole.compute(), rel=1e-9)

    def test_different_kinds_rejected(self):
        with pytest.raises(AggregateMergeError):
            RunningMean().merge(RunningVariance())

    def test_max_and_min_do_not_merge(self):
        with pytest.raises(TypeError):
            RunningMax().merge(RunningMin())


# =============================================================================
# Extrema
# =============================================================================

class TestExtrema:
    """Tests for RunningMax and RunningMin."""

    def test_running_max(self):
        agg = RunningMax()

        assert [agg.update(x) for x in [3, 1, 4, 1, 5]] == [3, 3, 4, 4, 5]

    def test_running_min(self):
        agg = _fill(RunningMin(), [3, 1, 4, 1, 5])

        assert agg.compute() == 1

    def test_merge(self):
        a = _fill(RunningMax(), [1, 9])
        b = _fill(RunningMax(), [5])

        assert merge(a, b).compute() == 9
        assert merge(b, a).compute() == 9

    def test_merge_with_empty(self):
        a = _fill(RunningMin(), [2])

        assert merge(RunningMin(), a).compute() == 2
        assert merge(a, RunningMin()).compute() == 2

    def test_empty_raises(self):
        with pytest.raises(EmptyAggregateError):
            RunningMax().compute()


# =============================================================================
# CustomAggregate
# =============================================================================

def _sum_abs():
    return CustomAggregate(
        name="sum_abs",
        identity=0.0,
        step=lambda s, x: s + abs(x),
        combine=lambda a, b: a + b,
    )


class TestCustomAggregate:
    """Tests for aggregates built from fold functions."""

    def test_update_and_compute(self):
        agg = _fill(_sum_abs(), [-1.0, 2.0, -3.0])

        assert agg.compute() == pytest.approx(6.0)
        assert agg.name == "sum_abs"

    def test_finalize(self):
        agg = CustomAggregate(
            name="range",
            identity=(math.inf, -math.inf),
            step=lambda s, x: (min(s[0], x), max(s[1], x)),
            combine=lambda a, b: (min(a[0], b[0]), max(a[1], b[1])),
            finalize=lambda s: s[1] - s[0],
        )
        _fill(agg, [4.0, -1.0, 7.0])

        assert agg.compute() == pytest.approx(8.0)

    def test_merge(self):
        a = _fill(_sum_abs(), [-1.0])
        b = _fill(_sum_abs(), [2.0, -2.0])

        assert merge(a, b).compute() == pytest.approx(5.0)
        assert merge(a, b).count == 3

    def test_merge_different_names_rejected(self):
        other = CustomAggregate("other", 0.0, lambda s, x: s + x, lambda a, b: a + b)

        with pytest.raises(AggregateMergeError):
            _sum_abs().merge(other)

    def test_reset(self):
        agg = _fill(_sum_abs(), [1.0])
        agg.reset()

        assert agg.count == 0
        assert agg.state == 0.0

    def test_empty_raises(self):
        with pytest.raises(EmptyAggregateError):
            _sum_abs().compute()


# =============================================================================
# Snapshots
# =============================================================================

class TestSnapshots:
    """Tests for serializable aggregate state."""

    @pytest.mark.parametrize("aggregate_class", [RunningMean, RunningVariance, RunningMax, RunningMin])
    def test_json_round_trip(self, aggregate_class, sample_values):
        agg = _fill(aggregate_class(), sample_values)

        restored = aggregate_class.from_snapshot(json.loads(json.dumps(agg.snapshot())))

        assert restored.count == agg.count
        assert restored.compute() == pytest.approx(agg.compute())

    def test_snapshot_fields(self):
        snap = _fill(RunningVariance(), [1.0, 2.0]).snapshot()

        assert snap == {"kind": "variance", "count": 2, "sum": 3.0, "sum_squares": 5.0}

    def test_wrong_kind_rejected(self):
        snap = _fill(RunningMean(), [1.0]).snapshot()

        with pytest.raises(StreamStatsError):
            RunningVariance.from_snapshot(snap)

    def test_reset_returns_to_identity(self):
        agg = _fill(RunningVariance(), [1.0, 2.0])
        agg.reset()

        assert agg.is_empty
        assert agg.snapshot() == RunningVariance().snapshot()


# =============================================================================
# Numerical behaviour
# =============================================================================

class TestNumericalStability:
    """Documented precision of the sufficient-statistics form."""

    def test_compensated_sum_recovers_small_terms(self):
        """1.0 plus a million 1e-16 terms keeps the small terms."""
        s = CompensatedSum()
        s.add(1.0)
        for _ in range(1_000_000):
            s.add(1e-16)

        assert s.value == pytest.approx(1.0 + 1e-10, rel=1e-15)

    def test_compensated_sum_merge(self):
        a, b = CompensatedSum(), CompensatedSum()
        for x in [1e16, 1.0, -1e16]:
            a.add(x)
        b.add(1.0)
        a.merge(b)

        assert a.value == pytest.approx(2.0)

    def test_large_offset_within_documented_tolerance(self):
        """Large mean relative to spread: agreement degrades but stays bounded."""
        values = [1e6 + x for x in [4.0, 7.0, 13.0, 16.0]]
        var = _fill(RunningVariance(), values)

        assert var.compute() == pytest.approx(np.var(values), rel=1e-3)

    def test_many_updates(self):
        rng = random.Random(42)
        values = [rng.gauss(10.0, 2.0) for _ in range(20_000)]
        var = _fill(RunningVariance(), values)

        assert var.mean == pytest.approx(np.mean(values), rel=1e-12)
        assert var.compute() == pytest.approx(np.var(values), rel=1e-9)
