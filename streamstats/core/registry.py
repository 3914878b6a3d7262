"""
Aggregate Registry
==================

Registry for creating aggregates by name and restoring them from snapshots.
"""

import logging
from typing import Callable, Optional, Type

from streamstats.core.base import Aggregate, Snapshot
from streamstats.core.errors import StreamStatsError, UnknownAggregateError

logger = logging.getLogger(__name__)

# Type alias for aggregate factory
AggregateFactory = Callable[[], Aggregate]


class AggregateRegistry:
    """
    Registry for aggregates.

    Provides a central place to look up aggregates by name, which is how
    configuration files, the parallel reducer and the snapshot collector
    refer to them. Supports both class-based and factory-based registration.

    Example:
        registry = AggregateRegistry()

        # Register by class
        registry.register("mean", RunningMean)

        # Register by factory
        @registry.register_factory("sum_abs")
        def create_sum_abs() -> Aggregate:
            return CustomAggregate("sum_abs", 0.0, lambda s, x: s + abs(x), operator.add)

        # Create aggregate instance
        aggregate = registry.create("mean")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._aggregates: dict[str, Type[Aggregate]] = {}
        self._factories: dict[str, AggregateFactory] = {}

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self,
        name: str,
        aggregate_class: Type[Aggregate],
    ) -> None:
        """
        Register an aggregate class.

        Args:
            name: Unique name for the aggregate.
            aggregate_class: Aggregate class, constructible without arguments.

        Raises:
            ValueError: If name is already registered.
        """
        if self.has_aggregate(name):
            raise ValueError(f"Aggregate '{name}' is already registered")

        self._aggregates[name] = aggregate_class
        logger.debug(f"Registered aggregate: {name}")

    def register_factory(
        self,
        name: str,
    ) -> Callable[[AggregateFactory], AggregateFactory]:
        """
        Decorator to register an aggregate factory.

        Args:
            name: Unique name for the aggregate.

        Returns:
            Decorator function.
        """
        def decorator(factory: AggregateFactory) -> AggregateFactory:
            if self.has_aggregate(name):
                raise ValueError(f"Aggregate '{name}' is already registered")
            self._factories[name] = factory
            logger.debug(f"Registered aggregate factory: {name}")
            return factory
        return decorator

    def unregister(self, name: str) -> None:
        """
        Unregister an aggregate.

        Args:
            name: Name of aggregate to unregister.
        """
        self._aggregates.pop(name, None)
        self._factories.pop(name, None)

    # =========================================================================
    # Discovery
    # =========================================================================

    def list_aggregates(self) -> list[str]:
        """
        List all registered aggregate names.

        Returns:
            Sorted list of aggregate names.
        """
        return sorted(set(self._aggregates.keys()) | set(self._factories.keys()))

    def has_aggregate(self, name: str) -> bool:
        return name in self._aggregates or name in self._factories

    def get_aggregate_class(self, name: str) -> Optional[Type[Aggregate]]:
        """
        Get the class for a registered aggregate.

        Returns:
            Aggregate class or None if factory-registered.
        """
        return self._aggregates.get(name)

    # =========================================================================
    # Creation
    # =========================================================================

    def create(self, name: str) -> Aggregate:
        """
        Create an empty aggregate instance.

        Args:
            name: Registered aggregate name.

        Returns:
            Aggregate instance (the identity element for merge).

        Raises:
            UnknownAggregateError: If aggregate is not registered.
        """
        if name in self._aggregates:
            return self._aggregates[name]()
        elif name in self._factories:
            return self._factories[name]()
        else:
            raise UnknownAggregateError(name, self.list_aggregates())

    def factory_for(self, name: str) -> AggregateFactory:
        """
        Zero-argument callable creating ``name`` aggregates.

        Fails immediately for unknown names rather than at first use.
        """
        if not self.has_aggregate(name):
            raise UnknownAggregateError(name, self.list_aggregates())
        return lambda: self.create(name)

    def restore(self, snapshot: Snapshot) -> Aggregate:
        """
        Rebuild an aggregate from a snapshot.

        Args:
            snapshot: Dictionary produced by Aggregate.snapshot().

        Returns:
            New aggregate holding the snapshot's state.

        Raises:
            UnknownAggregateError: If the snapshot kind is not registered.
            StreamStatsError: If the snapshot has no kind.
        """
        kind = snapshot.get("kind") if isinstance(snapshot, dict) else None
        if not kind:
            raise StreamStatsError(
                "Snapshot has no 'kind' field",
                details={"snapshot": snapshot},
            )
        aggregate = self.create(kind)
        aggregate.load_snapshot(snapshot)
        return aggregate


def register_builtin_aggregates(registry: AggregateRegistry) -> AggregateRegistry:
    """Register the mean, variance, max, min and percentile aggregates."""
    from streamstats.aggregates import (
        PercentileEstimator,
        RunningMax,
        RunningMean,
        RunningMin,
        RunningVariance,
    )

    for aggregate_class in (
        RunningMean,
        RunningVariance,
        RunningMax,
        RunningMin,
        PercentileEstimator,
    ):
        registry.register(str(aggregate_class.kind), aggregate_class)
    return registry


# Global registry instance
_global_registry: Optional[AggregateRegistry] = None


def get_registry() -> AggregateRegistry:
    """
    Get the global aggregate registry.

    Creates the registry with the built-in aggregates on first access.

    Returns:
        Global AggregateRegistry instance.
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = register_builtin_aggregates(AggregateRegistry())
    return _global_registry


def register_aggregate(name: str):
    """
    Decorator to register an aggregate class or factory with the global registry.

    Example:
        @register_aggregate("sum_abs")
        def create_sum_abs():
            return CustomAggregate("sum_abs", 0.0, lambda s, x: s + abs(x), operator.add)
    """
    def decorator(target):
        registry = get_registry()
        if isinstance(target, type) and issubclass(target, Aggregate):
            registry.register(name, target)
        else:
            registry.register_factory(name)(target)
        return target
    return decorator
