"""Running maximum and minimum."""
from typing import Any, Dict, Optional

from streamstats.core.base import Aggregate
from streamstats.core.enums import AggregateKind


class RunningMax(Aggregate):
    """Largest value seen so far. Values only need to be comparable."""
    kind = AggregateKind.MAX

    def __init__(self):
        super().__init__()
        self._value: Optional[Any] = None

    def _keep(self, candidate: Any) -> bool:
        return candidate > self._value

    def update(self, x: Any) -> Any:
        if self.count == 0 or self._keep(x):
            self._value = x
        self.count += 1
        return self._value

    def compute(self) -> Any:
        self._require_data()
        return self._value

    def _merge_state(self, other: "RunningMax") -> None:
        if other.count == 0:
            return
        if self.count == 0 or self._keep(other._value):
            self._value = other._value
        self.count += other.count

    def _dump_state(self) -> Dict[str, Any]:
        return {"count": self.count, "value": self._value}

    def _load_state(self, state: Dict[str, Any]) -> None:
        self.count = int(state["count"])
        self._value = state.get("value")


class RunningMin(RunningMax):
    """Smallest value seen so far."""
    kind = AggregateKind.MIN

    def _keep(self, candidate: Any) -> bool:
        return candidate < self._value
