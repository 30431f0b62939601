"""Weekly aggregator: DailySummary rows for one week → WeeklySummary.

The trend slope is an ordinary least squares fit of daily volume against the
day's 1-based position among the days that have a volume. Calendar gaps are
not represented, so two sessions a week apart fit the same as two on
consecutive days.
"""

import logging
import time
from collections.abc import Sequence
from datetime import date
from typing import Any

import psycopg

from ..logging import log_context
from ..models import DailySummary, WeeklySummary
from ..queries import fetch_daily_summaries, upsert_weekly_summary
from ..utils import week_end_for

logger = logging.getLogger(__name__)

MIN_TREND_POINTS = 2


def ols_trend_slope(values: Sequence[float]) -> float | None:
    """Slope of ``values`` against x = 1..N, or None for fewer than two points."""
    n = len(values)
    if n < MIN_TREND_POINTS:
        return None
    xs = range(1, n + 1)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)
    return (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)


def summarize_days(
    user_id: str, exercise_name: str, week_start: date, days: Sequence[DailySummary]
) -> WeeklySummary:
    """Reduce date-ordered daily rows to a weekly summary."""
    volumes = [d.total_volume for d in days if d.total_volume is not None]
    one_rms = [d.max_one_rm for d in days if d.max_one_rm is not None]

    return WeeklySummary(
        user_id=user_id,
        exercise_name=exercise_name,
        week_start=week_start,
        avg_volume=sum(volumes) / len(volumes) if volumes else None,
        max_one_rm=max(one_rms) if one_rms else None,
        session_count=sum(d.session_count or 0 for d in days),
        trend_slope=ols_trend_slope(volumes),
    )


async def aggregate_weekly(
    conn: psycopg.AsyncConnection[Any], user_id: str, exercise_name: str, week_start: date
) -> WeeklySummary | None:
    """Recompute and upsert the weekly summary for ``[week_start, week_start + 6]``.

    ``week_start`` is used as given; callers are responsible for aligning it.
    """
    t0 = time.monotonic()
    week_end = week_end_for(week_start)
    try:
        days = await fetch_daily_summaries(conn, user_id, exercise_name, week_start, week_end)
        if not days:
            logger.debug(
                "No daily summaries for weekly aggregation user=%s exercise=%s week_start=%s",
                user_id, exercise_name, week_start,
                extra=log_context(
                    user_id=user_id, exercise_name=exercise_name, week_start=week_start.isoformat()
                ),
            )
            return None

        summary = summarize_days(user_id, exercise_name, week_start, days)
        await upsert_weekly_summary(conn, summary)
    except Exception:
        logger.exception(
            "Weekly aggregation failed for user=%s exercise=%s week_start=%s",
            user_id, exercise_name, week_start,
            extra=log_context(
                user_id=user_id,
                exercise_name=exercise_name,
                week_start=week_start.isoformat(),
                duration_ms=round((time.monotonic() - t0) * 1000, 2),
            ),
        )
        raise

    logger.debug(
        "Weekly aggregation completed for user=%s exercise=%s week_start=%s (days=%d, trend=%s)",
        user_id, exercise_name, week_start, len(days), summary.trend_slope,
        extra=log_context(
            user_id=user_id,
            exercise_name=exercise_name,
            week_start=week_start.isoformat(),
            record_count=len(days),
            avg_volume=summary.avg_volume,
            max_one_rm=summary.max_one_rm,
            session_count=summary.session_count,
            trend_slope=summary.trend_slope,
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
        ),
    )
    return summary
