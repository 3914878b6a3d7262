"""
Custom aggregates built from user-supplied fold functions.

A custom aggregate is defined by three pieces:

    identity          the state of an empty aggregate
    step(state, x)    fold one value into the state
    combine(a, b)     merge two states (must be associative and commutative
                      for the parallel reducer to be order-independent)

and optionally ``finalize(state)`` to turn the state into the reported value.
"""
import copy
from typing import Any, Callable, Dict, Optional

from streamstats.core.base import Aggregate
from streamstats.core.enums import AggregateKind

StepFn = Callable[[Any, Any], Any]
CombineFn = Callable[[Any, Any], Any]
FinalizeFn = Callable[[Any], Any]


class CustomAggregate(Aggregate):
    """
    Aggregate with user-defined sufficient statistics.

    Example:
        sum_of_abs = CustomAggregate(
            name="sum_abs",
            identity=0.0,
            step=lambda s, x: s + abs(x),
            combine=lambda a, b: a + b,
        )
    """
    kind = AggregateKind.CUSTOM

    def __init__(
        self,
        name: str,
        identity: Any,
        step: StepFn,
        combine: CombineFn,
        finalize: Optional[FinalizeFn] = None,
    ):
        super().__init__()
        self._name = name
        self._identity = identity
        self._step = step
        self._combine = combine
        self._finalize = finalize
        self.state = copy.deepcopy(identity)

    @property
    def name(self) -> str:
        return self._name

    def update(self, x: Any) -> Any:
        self.state = self._step(self.state, x)
        self.count += 1
        return self._result()

    def _result(self) -> Any:
        if self._finalize is None:
            return self.state
        return self._finalize(self.state)

    def compute(self) -> Any:
        self._require_data()
        return self._result()

    def _merge_state(self, other: "CustomAggregate") -> None:
        self.state = self._combine(self.state, other.state)
        self.count += other.count

    def reset(self) -> None:
        self.state = copy.deepcopy(self._identity)
        self.count = 0

    def _dump_state(self) -> Dict[str, Any]:
        return {"count": self.count, "state": self.state}

    def _load_state(self, state: Dict[str, Any]) -> None:
        self.count = int(state["count"])
        self.state = state["state"]


def custom_factory(
    name: str,
    identity: Any,
    step: StepFn,
    combine: CombineFn,
    finalize: Optional[FinalizeFn] = None,
) -> Callable[[], CustomAggregate]:
    """Return a zero-argument factory, suitable for the aggregate registry."""
    def factory() -> CustomAggregate:
        return CustomAggregate(name, identity, step, combine, finalize)
    factory.__name__ = f"create_{name}"
    return factory
