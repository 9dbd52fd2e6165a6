"""Cost aggregation and refresh orchestration."""

from .aggregator import aggregate_by_day, aggregate_by_service, month_over_month_change, total_amount

__all__ = [
    "aggregate_by_day",
    "aggregate_by_service",
    "month_over_month_change",
    "total_amount",
]
