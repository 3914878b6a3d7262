"""
Base Aggregate Class
====================

Abstract base class for all streaming aggregates.

An aggregate holds the sufficient statistics of the values it has seen and
follows a uniform contract:

    update(value) -> current statistic     O(1) fold of one value
    merge(other)  -> self                  combine a disjoint partition
    compute()     -> current statistic     raises EmptyAggregateError if empty
    snapshot()    -> dict                  JSON-serializable state

Merging is exact, associative and commutative, and a freshly constructed
aggregate is the identity element.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Protocol, TypeVar, runtime_checkable

from streamstats.core.enums import AggregateKind
from streamstats.core.errors import AggregateMergeError, EmptyAggregateError, StreamStatsError

# Type alias for serialized aggregate state
Snapshot = dict[str, Any]

A = TypeVar("A", bound="Aggregate")


@runtime_checkable
class Updatable(Protocol):
    """Anything the stream driver can feed: a single update(value) method."""

    def update(self, value: Any) -> Any:
        ...


class Aggregate(ABC):
    """
    Abstract base class for mergeable streaming aggregates.

    Subclasses set ``kind`` and implement update, compute, and the
    state hooks used by merge and snapshot.

    Example:
        mean = RunningMean()
        for x in values:
            mean.update(x)
        mean.merge(other_mean)
        print(mean.compute())
    """

    kind: AggregateKind

    def __init__(self):
        self.count = 0

    @property
    def name(self) -> str:
        """Registry name, also written as the snapshot ``kind``."""
        return str(self.kind)

    # =========================================================================
    # Core Aggregate Methods
    # =========================================================================

    @abstractmethod
    def update(self, value: Any) -> Any:
        """
        Fold one value into the aggregate.

        Args:
            value: The observed value.

        Returns:
            The statistic recomputed after this value.
        """
        pass

    @abstractmethod
    def compute(self) -> Any:
        """
        Return the current statistic.

        Raises:
            EmptyAggregateError: If no value has been observed.
        """
        pass

    @property
    def value(self) -> Any:
        """Current statistic (same as compute())."""
        return self.compute()

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def merge(self: A, other: A) -> A:
        """
        Merge another aggregate's statistics into this one.

        The other aggregate is borrowed and never mutated.

        Args:
            other: Aggregate computed over a disjoint partition.

        Returns:
            self, now covering the union of both partitions.

        Raises:
            AggregateMergeError: If the aggregates are of different kinds.
        """
        if type(other) is not type(self) or other.name != self.name:
            raise AggregateMergeError(repr(self), repr(other))
        self._merge_state(other)
        return self

    @abstractmethod
    def _merge_state(self, other: "Aggregate") -> None:
        """Combine field-wise with an aggregate of the same type."""
        pass

    def copy(self: A) -> A:
        """Return an independent copy of this aggregate."""
        return copy.deepcopy(self)

    def reset(self) -> None:
        """Return to the empty (identity) state."""
        self.__init__()

    def _require_data(self) -> None:
        if self.count == 0:
            raise EmptyAggregateError(type(self).__name__)

    # =========================================================================
    # Snapshots
    # =========================================================================

    def snapshot(self) -> Snapshot:
        """
        Serialize the sufficient statistics.

        The result only contains JSON-compatible types (for percentile
        estimators, as long as the observed values are).

        Returns:
            Dictionary with ``kind`` and the aggregate's fields.
        """
        return {"kind": self.name, **self._dump_state()}

    def load_snapshot(self, snapshot: Snapshot) -> None:
        """
        Replace this aggregate's state with a snapshot's.

        Args:
            snapshot: Dictionary produced by snapshot().

        Raises:
            StreamStatsError: If the snapshot belongs to another aggregate.
        """
        kind = snapshot.get("kind")
        if kind != self.name:
            raise StreamStatsError(
                f"Snapshot of kind '{kind}' cannot be loaded into '{self.name}'",
                details={"snapshot": snapshot},
            )
        self._load_state(snapshot)

    @classmethod
    def from_snapshot(cls: type[A], snapshot: Snapshot) -> A:
        """Build a new aggregate from a snapshot."""
        aggregate = cls()
        aggregate.load_snapshot(snapshot)
        return aggregate

    @abstractmethod
    def _dump_state(self) -> dict[str, Any]:
        pass

    @abstractmethod
    def _load_state(self, state: dict[str, Any]) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, count={self.count})"


def merge(left: A, right: A) -> A:
    """
    Pure merge: return a new aggregate covering both inputs.

    Neither argument is mutated. Usable for the in-process reduce step and
    for combining snapshots shipped from remote workers.
    """
    return left.copy().merge(right)
