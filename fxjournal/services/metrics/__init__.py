"""Per-period performance rollups maintained incrementally from trades."""

from fxjournal.services.metrics.aggregator import (
    METRICS_TABLE,
    PerformanceAggregator,
    apply_to_metric,
    remove_from_metric,
)
from fxjournal.services.metrics.periods import PeriodType, period_keys

__all__ = [
    "METRICS_TABLE",
    "PerformanceAggregator",
    "PeriodType",
    "apply_to_metric",
    "period_keys",
    "remove_from_metric",
]
