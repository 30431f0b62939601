"""Workout rollups: daily, weekly and monthly exercise summaries."""

from .aggregators import aggregate_daily, aggregate_monthly, aggregate_weekly
from .coordinator import AggregationCoordinator, ProcessingKeySet
from .errors import StorageError

__all__ = [
    "AggregationCoordinator",
    "ProcessingKeySet",
    "StorageError",
    "aggregate_daily",
    "aggregate_monthly",
    "aggregate_weekly",
]
