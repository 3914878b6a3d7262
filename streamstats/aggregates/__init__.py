"""
Aggregates Module
=================

Constant-memory, mergeable streaming aggregates.

Modules:
- moments: RunningMean and RunningVariance from sufficient statistics
- extrema: RunningMax and RunningMin
- percentile: Frequency-table percentile estimator
- custom: Aggregates from user-supplied fold functions
"""

from .moments import CompensatedSum, RunningMean, RunningVariance
from .extrema import RunningMax, RunningMin
from .percentile import FrequencyTable, OrderedValueIndex, PercentileEstimator
from .custom import CustomAggregate, custom_factory

__all__ = [
    "CompensatedSum",
    "RunningMean",
    "RunningVariance",
    "RunningMax",
    "RunningMin",
    "FrequencyTable",
    "OrderedValueIndex",
    "PercentileEstimator",
    "CustomAggregate",
    "custom_factory",
]
