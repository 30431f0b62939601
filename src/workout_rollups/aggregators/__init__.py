from .daily import aggregate_daily, summarize_sets
from .monthly import aggregate_monthly, summarize_weeks
from .weekly import aggregate_weekly, ols_trend_slope, summarize_days

__all__ = [
    "aggregate_daily",
    "aggregate_monthly",
    "aggregate_weekly",
    "ols_trend_slope",
    "summarize_days",
    "summarize_sets",
    "summarize_weeks",
]
