"""
Stream Driver
=============

Feeds values one at a time into a set of named aggregates.

The driver only relies on the ``update(value) -> result`` contract, so it
drives RunningMean, RunningVariance, PercentileEstimator, custom aggregates
or any other object with an ``update`` method alike. Each value is applied
to every registered aggregate before the next one is pulled; nothing is
buffered beyond the in-flight value.
"""

import logging
import threading
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional, Union

from streamstats.core.base import Updatable

logger = logging.getLogger(__name__)

# Latest update() result per aggregate name
StepResult = dict[str, Any]
StepCallback = Callable[[int, StepResult], None]


class StreamDriver:
    """
    Drives values from a source into one or more aggregates.

    Example:
        driver = StreamDriver({"mean": RunningMean(), "p": PercentileEstimator()})
        driver.run(TextLineSource("values.txt"))
        print(driver.aggregates["mean"].compute())

        # Live monitoring
        for step in driver.iter_steps(source):
            print(step["mean"])
    """

    def __init__(
        self,
        aggregates: Optional[Union[Mapping[str, Updatable], Iterable[Updatable]]] = None,
        on_step: Optional[StepCallback] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize driver.

        Args:
            aggregates: Aggregates keyed by name, or an iterable of aggregates
                (named by their ``name`` attribute, else by position).
            on_step: Called with (values_processed, latest results) after each value.
            stop_event: When set, run() and iter_steps() stop before the next value.
        """
        self.aggregates: dict[str, Updatable] = {}
        self.on_step = on_step
        self.stop_event = stop_event
        self.values_processed = 0
        self.latest: StepResult = {}
        # True once a source has been read to its end
        self.exhausted = False

        if aggregates is None:
            return
        if isinstance(aggregates, Mapping):
            for name, aggregate in aggregates.items():
                self.register(name, aggregate)
        else:
            for position, aggregate in enumerate(aggregates):
                self.register(getattr(aggregate, "name", str(position)), aggregate)

    # =========================================================================
    # Registration
    # =========================================================================

    def register(self, name: str, aggregate: Updatable) -> None:
        """
        Register an aggregate under a name.

        Raises:
            ValueError: If the name is taken.
            TypeError: If the object has no update() method.
        """
        if name in self.aggregates:
            raise ValueError(f"Aggregate '{name}' is already registered with this driver")
        if not isinstance(aggregate, Updatable):
            raise TypeError(f"{aggregate!r} does not implement update(value)")
        self.aggregates[name] = aggregate

    # =========================================================================
    # Driving
    # =========================================================================

    def step(self, value: Any) -> StepResult:
        """
        Apply one value to every registered aggregate.

        Returns:
            The update() result of each aggregate, by name.
        """
        results = {name: aggregate.update(value) for name, aggregate in self.aggregates.items()}
        self.values_processed += 1
        self.latest = results
        if self.on_step is not None:
            self.on_step(self.values_processed, results)
        return results

    def feed(self, batch: Iterable[Any]) -> StepResult:
        """
        Apply a batch of values, one at a time.

        Returns:
            Results after the last value of the batch (the previous
            results if the batch was empty).
        """
        for value in batch:
            self.step(value)
        return self.latest

    def iter_steps(self, source: Iterable[Any]) -> Iterator[StepResult]:
        """
        Drive a source lazily, yielding the results after every value.
        """
        self.exhausted = False
        for value in source:
            if self._stopped():
                logger.debug(f"Stop requested after {self.values_processed} values")
                return
            yield self.step(value)
        self.exhausted = True

    def run(self, source: Iterable[Any]) -> StepResult:
        """
        Drive an entire source.

        Returns:
            Results after the last value.
        """
        for _ in self.iter_steps(source):
            pass
        return self.latest

    def _stopped(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    @property
    def stopped(self) -> bool:
        """Whether the stop event was set."""
        return self._stopped()
