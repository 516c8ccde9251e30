"""ipo_sentinel.aggregation — Multi-source reconciliation."""

from ipo_sentinel.aggregation.aggregator import (
    DEFAULT_SOURCES,
    Aggregator,
    classify_confidence,
    classify_trend,
    reconcile,
)

__all__ = [
    "Aggregator",
    "DEFAULT_SOURCES",
    "classify_confidence",
    "classify_trend",
    "reconcile",
]
