"""
Snapshot collection for distributed merging.

Remote workers keep local aggregates and periodically ship a snapshot of
what they have seen since the last shipment (a delta). The collector
restores each snapshot through the aggregate registry and merges it into a
running total per name. Transport and wire format are up to the caller;
snapshots are plain JSON-compatible dicts.

The collector is not thread-safe: callers receiving snapshots concurrently
must serialize calls to ingest().
"""
import logging
from collections import Counter
from typing import Optional

from streamstats.core.base import Aggregate, Snapshot
from streamstats.core.registry import AggregateRegistry, get_registry

logger = logging.getLogger(__name__)


def drain_delta(aggregate: Aggregate) -> Snapshot:
    """
    Snapshot an aggregate and reset it to the identity.

    Shipping drained snapshots means each shipment covers only the values
    seen since the previous one, so the collector can simply merge them.
    """
    snapshot = aggregate.snapshot()
    aggregate.reset()
    return snapshot


class SnapshotCollector:
    """
    Central collector merging snapshot deltas into running totals.

    Example:
        collector = SnapshotCollector()
        collector.ingest("worker-1", drain_delta(local_mean))
        collector.ingest("worker-2", payload_from_network)
        print(collector.total("mean").compute())
    """

    def __init__(self, registry: Optional[AggregateRegistry] = None):
        self.registry = registry or get_registry()
        self._totals: dict[str, Aggregate] = {}
        self.deltas_by_worker: Counter = Counter()

    def ingest(self, worker_id: str, snapshot: Snapshot) -> Aggregate:
        """
        Merge one snapshot delta into the running total for its kind.

        Args:
            worker_id: Identifier of the sending worker (for bookkeeping).
            snapshot: Dictionary produced by Aggregate.snapshot().

        Returns:
            The updated running total.

        Raises:
            UnknownAggregateError: If the snapshot kind is not registered.
            StreamStatsError: If the snapshot is malformed.
        """
        delta = self.registry.restore(snapshot)
        total = self._totals.get(delta.name)
        if total is None:
            self._totals[delta.name] = delta
            total = delta
        else:
            total.merge(delta)

        self.deltas_by_worker[worker_id] += 1
        logger.debug(
            f"Merged {delta.name} delta from {worker_id} "
            f"({delta.count} values, total {total.count})"
        )
        return total

    def total(self, name: str) -> Aggregate:
        """
        Running total for an aggregate name.

        Raises:
            KeyError: If no snapshot of that name has been ingested.
        """
        return self._totals[name]

    def totals(self) -> dict[str, Aggregate]:
        """Copies of all running totals."""
        return {name: aggregate.copy() for name, aggregate in self._totals.items()}

    @property
    def workers_seen(self) -> list[str]:
        return sorted(self.deltas_by_worker)
