"""
Parallel Reducer
================

Map-reduce over independently readable partitions.

Map: one worker per partition builds fresh aggregates and drives them over
the whole partition. Workers share no mutable state, so no locks are needed.

Reduce: once every worker has finished, the partial aggregates are folded
into fresh (identity) aggregates with merge(). Merge is associative and
commutative, so the result does not depend on worker completion order; the
fold still runs in partition order so repeated runs round identically.

A partition that fails to read or parse is reported with its identifier and
error, and left out of the merge. Sibling partitions are unaffected.
"""

import logging
import threading
import time
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from shared.partitioning import split_sequence
from streamstats.core.base import Aggregate
from streamstats.core.enums import WorkerStatus
from streamstats.core.errors import (
    ParseError,
    PartitionFailedError,
    PartitionReadError,
)
from streamstats.core.registry import AggregateFactory, AggregateRegistry, get_registry
from streamstats.stream.driver import StreamDriver
from streamstats.stream.sources import IterableSource, PartitionSource

logger = logging.getLogger(__name__)

# Registry name, or a zero-argument factory
AggregateSpec = Union[str, Callable[[], Aggregate]]


@dataclass
class PartitionResult:
    """Outcome of one map worker."""
    partition_id: str
    index: int
    status: WorkerStatus
    aggregates: dict[str, Aggregate] = field(default_factory=dict)
    values_processed: int = 0
    skipped: int = 0
    error: Optional[BaseException] = None
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.status == WorkerStatus.COMPLETED

    @property
    def error_kind(self) -> Optional[str]:
        return type(self.error).__name__ if self.error is not None else None


@dataclass
class ReduceResult:
    """
    Merged aggregates plus a per-partition report.

    ``aggregates`` covers every completed partition. It is empty when the
    run was cancelled.
    """
    execution_id: str
    aggregates: dict[str, Aggregate]
    partitions: list[PartitionResult]
    cancelled: bool = False
    duration_seconds: float = 0.0

    @property
    def failures(self) -> list[PartitionResult]:
        return [p for p in self.partitions if p.status == WorkerStatus.FAILED]

    @property
    def completed(self) -> list[PartitionResult]:
        return [p for p in self.partitions if p.status == WorkerStatus.COMPLETED]

    @property
    def success(self) -> bool:
        return not self.cancelled and not self.failures

    @property
    def values_processed(self) -> int:
        return sum(p.values_processed for p in self.completed)

    def raise_for_failures(self) -> None:
        """
        Raises:
            PartitionFailedError: If any partition failed.
        """
        failures = self.failures
        if failures:
            raise PartitionFailedError(failures)

    def summary(self) -> dict[str, Any]:
        """Plain-dict report, suitable for logging or JSON output."""
        return {
            "success": self.success,
            "execution_id": self.execution_id,
            "duration_seconds": self.duration_seconds,
            "total_partitions": len(self.partitions),
            "completed": len(self.completed),
            "failed": len(self.failures),
            "cancelled": self.cancelled,
            "values_processed": self.values_processed,
            "errors": [
                {
                    "partition_id": p.partition_id,
                    "kind": p.error_kind,
                    "message": str(p.error),
                }
                for p in self.failures
            ],
        }


class ParallelReducer:
    """
    Computes aggregates over partitions concurrently and merges them.

    Example:
        reducer = ParallelReducer(["mean", "variance", "percentile"], max_workers=4)
        sources = [TextLineSource(p, root=root) for p in discover_partitions(root)]
        result = reducer.run(sources)
        result.raise_for_failures()
        print(result.aggregates["variance"].compute())
    """

    def __init__(
        self,
        aggregates: Union[Sequence[str], Mapping[str, AggregateSpec]],
        max_workers: Optional[int] = None,
        registry: Optional[AggregateRegistry] = None,
        show_progress: bool = False,
    ):
        """
        Initialize reducer.

        Args:
            aggregates: Registry names, or a mapping of output name to a
                registry name or zero-argument factory.
            max_workers: Worker threads (None lets the executor decide,
                1 runs partitions sequentially in the calling thread).
            registry: Registry used to resolve names (global one by default).
            show_progress: Show a tqdm progress bar over finished partitions.

        Raises:
            UnknownAggregateError: If a name is not registered.
        """
        self.registry = registry or get_registry()
        self.max_workers = max_workers
        self.show_progress = show_progress
        self._factories: dict[str, AggregateFactory] = {}
        # Set only while run() is in progress
        self._stop_event: Optional[threading.Event] = None
        self._futures: list[Future] = []

        specs = aggregates.items() if isinstance(aggregates, Mapping) else ((n, n) for n in aggregates)
        for name, spec in specs:
            if isinstance(spec, str):
                self._factories[name] = self.registry.factory_for(spec)
            else:
                self._factories[name] = spec

        if not self._factories:
            raise ValueError("At least one aggregate is required")

    @property
    def aggregate_names(self) -> list[str]:
        return list(self._factories)

    def create_aggregates(self) -> dict[str, Aggregate]:
        """Fresh identity aggregates, one per configured name."""
        return {name: factory() for name, factory in self._factories.items()}

    # =========================================================================
    # Map
    # =========================================================================

    def map_partition(self, source: PartitionSource, index: int = 0) -> PartitionResult:
        """
        Drive fresh aggregates over a whole partition.

        Parse and read errors end this partition only and are returned
        in the result rather than raised.
        """
        start = time.monotonic()
        stop_event = self._stop_event
        if stop_event is not None and stop_event.is_set():
            return PartitionResult(
                partition_id=source.partition_id,
                index=index,
                status=WorkerStatus.CANCELLED,
            )

        aggregates = self.create_aggregates()
        driver = StreamDriver(aggregates, stop_event=stop_event)

        logger.debug(f"Mapping partition {source.partition_id}")
        try:
            driver.run(source)
        except (ParseError, PartitionReadError) as e:
            logger.error(f"Partition {source.partition_id} failed: {e}")
            return PartitionResult(
                partition_id=source.partition_id,
                index=index,
                status=WorkerStatus.FAILED,
                values_processed=driver.values_processed,
                skipped=source.stats.get("skipped", 0),
                error=e,
                duration_seconds=time.monotonic() - start,
            )

        status = WorkerStatus.COMPLETED if driver.exhausted else WorkerStatus.CANCELLED
        logger.debug(
            f"Partition {source.partition_id} {status}: "
            f"{driver.values_processed} values, {source.stats.get('skipped', 0)} skipped"
        )
        return PartitionResult(
            partition_id=source.partition_id,
            index=index,
            status=status,
            aggregates=aggregates if status == WorkerStatus.COMPLETED else {},
            values_processed=driver.values_processed,
            skipped=source.stats.get("skipped", 0),
            duration_seconds=time.monotonic() - start,
        )

    # =========================================================================
    # Reduce
    # =========================================================================

    def reduce(self, partials: Iterable[Mapping[str, Aggregate]]) -> dict[str, Aggregate]:
        """
        Fold partial aggregates into fresh ones with merge().

        The partials are borrowed, never mutated. With no partials the
        result is the identity aggregates.
        """
        merged = self.create_aggregates()
        for partial in partials:
            for name, aggregate in merged.items():
                aggregate.merge(partial[name])
        return merged

    # =========================================================================
    # Run
    # =========================================================================

    def run(self, sources: Sequence[PartitionSource]) -> ReduceResult:
        """
        Map every partition concurrently, then reduce.

        Args:
            sources: One source per partition.

        Returns:
            ReduceResult with merged aggregates and per-partition outcomes.
        """
        execution_id = str(uuid.uuid4())[:8]
        start_time = datetime.now()
        stop_event = threading.Event()
        self._stop_event = stop_event

        logger.info(
            f"[{execution_id}] Reducing {len(sources)} partitions "
            f"({', '.join(self.aggregate_names)}) with max_workers={self.max_workers}"
        )

        if self.max_workers == 1:
            results = [
                self._map_sequentially(source, i, execution_id)
                for i, source in enumerate(sources)
            ]
        else:
            results = self._map_concurrently(sources, execution_id)

        results.sort(key=lambda r: r.index)
        cancelled = stop_event.is_set()
        self._stop_event = None

        if cancelled:
            logger.warning(f"[{execution_id}] Cancelled - discarding partial results")
            merged: dict[str, Aggregate] = {}
        else:
            merged = self.reduce(r.aggregates for r in results if r.succeeded)

        duration = (datetime.now() - start_time).total_seconds()
        result = ReduceResult(
            execution_id=execution_id,
            aggregates=merged,
            partitions=results,
            cancelled=cancelled,
            duration_seconds=duration,
        )

        logger.info("=" * 70)
        logger.info(f"[{execution_id}] REDUCE COMPLETE in {duration:.2f}s")
        logger.info(f"Total partitions: {len(results)}")
        logger.info(f"Completed: {len(result.completed)}")
        logger.info(f"Failed: {len(result.failures)}")
        logger.info(f"Values: {result.values_processed:,}")
        logger.info("=" * 70)
        for failure in result.failures:
            logger.error(
                f"[{execution_id}] {failure.partition_id}: {failure.error_kind}: {failure.error}"
            )

        return result

    def _map_sequentially(
        self,
        source: PartitionSource,
        index: int,
        execution_id: str,
    ) -> PartitionResult:
        try:
            return self.map_partition(source, index)
        except Exception as e:
            logger.error(
                f"[{execution_id}] Exception in partition {source.partition_id}: {e}",
                exc_info=True,
            )
            return PartitionResult(
                partition_id=source.partition_id,
                index=index,
                status=WorkerStatus.FAILED,
                error=e,
            )

    def _map_concurrently(
        self,
        sources: Sequence[PartitionSource],
        execution_id: str,
    ) -> list[PartitionResult]:
        results = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {}
            self._futures = []
            for i, source in enumerate(sources):
                future = executor.submit(self.map_partition, source, i)
                futures[future] = (i, source)
                # Visible to cancel() as soon as it is submitted
                self._futures.append(future)

            finished = as_completed(futures)
            if self.show_progress:
                finished = tqdm(finished, total=len(futures), desc="  Partitions")

            for future in finished:
                index, source = futures[future]
                try:
                    results.append(future.result())
                except CancelledError:
                    results.append(PartitionResult(
                        partition_id=source.partition_id,
                        index=index,
                        status=WorkerStatus.CANCELLED,
                    ))
                except Exception as e:
                    logger.error(
                        f"[{execution_id}] Exception in partition {source.partition_id}: {e}",
                        exc_info=True,
                    )
                    results.append(PartitionResult(
                        partition_id=source.partition_id,
                        index=index,
                        status=WorkerStatus.FAILED,
                        error=e,
                    ))

        self._futures = []
        return results

    def run_sequence(self, values: Sequence[Any], num_partitions: int) -> ReduceResult:
        """
        Split an in-memory sequence into contiguous partitions and reduce it.
        """
        sources = [
            IterableSource(chunk, partition_id=f"chunk-{i}")
            for i, chunk in enumerate(split_sequence(values, num_partitions))
        ]
        return self.run(sources)

    def cancel(self) -> None:
        """
        Ask a running reduce to stop.

        Only affects a run already in progress: each run() starts with a
        fresh stop event, and a cancel() with no run in progress is logged
        and ignored. Workers stop before their next value; partitions not
        yet started are never started. The run returns with
        ``cancelled=True``.
        """
        stop_event = self._stop_event
        if stop_event is None:
            logger.warning("Cancellation requested but no run is in progress; ignoring")
            return

        logger.info("Cancellation requested")
        stop_event.set()
        for future in list(self._futures):
            future.cancel()
