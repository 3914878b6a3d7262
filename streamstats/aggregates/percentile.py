"""
Percentile estimation from a frequency table over distinct values.

Memory grows with the number of distinct values k, not with stream length,
so the estimator is meant for streams whose values repeat a lot (latencies
rounded to milliseconds, integer counts, categorical ranks). High-cardinality
continuous data should be bucketed before it reaches the estimator.

Costs: update is O(log k), a query walks the ordered index in O(k).
"""
import math
from collections import Counter
from numbers import Real
from typing import Any, Dict, Iterable, Iterator, List, Tuple

from sortedcontainers import SortedList

from streamstats.core.base import Aggregate
from streamstats.core.enums import AggregateKind
from streamstats.core.errors import InvalidPercentileError


class FrequencyTable:
    """
    Occurrence count per distinct value, plus the total count.

    The sum of all occurrence counts always equals ``total``.
    """

    def __init__(self):
        self._counts: Counter = Counter()
        self.total = 0

    def add(self, value: Any, occurrences: int = 1) -> bool:
        """
        Record occurrences of a value.

        Returns:
            True if the value had not been seen before.
        """
        is_new = value not in self._counts
        self._counts[value] += occurrences
        self.total += occurrences
        return is_new

    def occurrences(self, value: Any) -> int:
        return self._counts.get(value, 0)

    def items(self) -> Iterable[Tuple[Any, int]]:
        return self._counts.items()

    def __contains__(self, value: Any) -> bool:
        return value in self._counts

    def __len__(self) -> int:
        return len(self._counts)


class OrderedValueIndex:
    """
    Append-only sorted index over distinct values.

    Backed by a SortedList, so insertion is O(log k) and iteration is in
    ascending order. Entries are never removed.
    """

    def __init__(self, values: Iterable[Any] = ()):
        self._values = SortedList(values)

    def insert(self, value: Any):
        self._values.add(value)

    def ascending(self) -> Iterator[Any]:
        """Cursor over the distinct values, smallest first."""
        return iter(self._values)

    def below(self, value: Any) -> Iterator[Any]:
        """Cursor over the distinct values strictly smaller than ``value``."""
        return self._values.irange(maximum=value, inclusive=(True, False))

    @property
    def min(self) -> Any:
        return self._values[0]

    @property
    def max(self) -> Any:
        return self._values[-1]

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return self.ascending()


def _validate_percentile(p: Any) -> float:
    if isinstance(p, bool) or not isinstance(p, Real):
        raise InvalidPercentileError(p)
    p = float(p)
    if math.isnan(p) or p < 0.0 or p > 100.0:
        raise InvalidPercentileError(p)
    return p


class PercentileEstimator(Aggregate):
    """
    Percentile queries over a stream of totally ordered values.

    ``query(p)`` walks the distinct values from the smallest upward,
    accumulating each value's share of the total, and returns the first
    value at which the cumulative percentage reaches or exceeds ``p``.
    So for [1, 2, 2, 3, 4, 4, 4, 5], ``query(50)`` is 3: the cumulative
    percentage first reaches 50 at value 3. ``query(0)`` is the minimum
    and ``query(100)`` the maximum.

    The threshold test uses integer arithmetic (count * 100 >= p * total)
    so float accumulation never leaves ``query(100)`` short of the maximum.

    Values must be totally ordered, so NaN is rejected by update().
    """
    kind = AggregateKind.PERCENTILE

    def __init__(self):
        super().__init__()
        self.frequencies = FrequencyTable()
        self.index = OrderedValueIndex()

    def update(self, x: Any) -> int:
        """
        Record one value.

        Returns:
            The total number of observations.

        Raises:
            ValueError: If x is NaN, which has no place in the value order.
        """
        # NaN is the only value not equal to itself
        if x != x:
            raise ValueError("NaN cannot be recorded by a percentile estimator")
        if self.frequencies.add(x):
            self.index.insert(x)
        self.count += 1
        return self.count

    def compute(self) -> Any:
        """Median, by the same tie-break rule as query()."""
        return self.query(50)

    @property
    def median(self) -> Any:
        return self.query(50)

    @property
    def distinct_count(self) -> int:
        return len(self.index)

    @property
    def min(self) -> Any:
        self._require_data()
        return self.index.min

    @property
    def max(self) -> Any:
        self._require_data()
        return self.index.max

    def query(self, p: float) -> Any:
        """
        Value at percentile ``p``.

        Args:
            p: Percentile in [0, 100].

        Raises:
            InvalidPercentileError: If p is outside [0, 100].
            EmptyAggregateError: If nothing has been observed.
        """
        return self.query_many([p])[0]

    def query_many(self, percentiles: Iterable[float]) -> List[Any]:
        """
        Answer several percentile queries with a single index traversal.

        Results are returned in the order the percentiles were given.
        """
        checked = [_validate_percentile(p) for p in percentiles]
        self._require_data()

        total = self.frequencies.total
        order = sorted(range(len(checked)), key=lambda i: checked[i])
        results: List[Any] = [None] * len(checked)

        cursor = self.index.ascending()
        cumulative = 0
        value = None
        for i in order:
            threshold = checked[i] * total
            while value is None or cumulative * 100 < threshold:
                value = next(cursor)
                cumulative += self.frequencies.occurrences(value)
            results[i] = value
        return results

    def percentile_rank(self, x: Any) -> float:
        """Percentage of observations strictly below ``x``."""
        self._require_data()
        below = sum(self.frequencies.occurrences(v) for v in self.index.below(x))
        return below * 100.0 / self.frequencies.total

    def _merge_state(self, other: "PercentileEstimator") -> None:
        for value, occurrences in other.frequencies.items():
            if self.frequencies.add(value, occurrences):
                self.index.insert(value)
        self.count += other.count

    def _dump_state(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "frequencies": [[v, self.frequencies.occurrences(v)] for v in self.index],
        }

    def _load_state(self, state: Dict[str, Any]) -> None:
        self.frequencies = FrequencyTable()
        for value, occurrences in state["frequencies"]:
            self.frequencies.add(value, int(occurrences))
        self.index = OrderedValueIndex(v for v, _ in state["frequencies"])
        self.count = self.frequencies.total
