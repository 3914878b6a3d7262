"""
Stream Module
=============

Value sources and the driver that feeds them into aggregates.
"""

from .driver import StepResult, StreamDriver
from .sources import (
    ColumnSource,
    IterableSource,
    PartitionSource,
    TextLineSource,
    make_source,
    parse_finite_float,
)

__all__ = [
    "StreamDriver",
    "StepResult",
    "PartitionSource",
    "IterableSource",
    "TextLineSource",
    "ColumnSource",
    "make_source",
    "parse_finite_float",
]
