"""Monthly aggregator: WeeklySummary rows for one month → MonthlySummary.

total_volume is the sum of the weekly *average* volumes, not of daily
totals. Weeks are assigned to the month containing their week_start.

A day early in a month whose Monday falls in the previous month belongs to
a week that neither month picks up from that day's cascade: the cascade
refreshes its own month, which excludes that week, and the previous month
is not re-run. Thu 2024-02-01 lands in the week of 2024-01-29, so a session
on that day refreshes February without it and leaves January stale.
"""

import logging
import time
from collections.abc import Sequence
from datetime import date
from typing import Any

import psycopg

from ..logging import log_context
from ..models import MonthlySummary, WeeklySummary
from ..queries import fetch_weekly_summaries, upsert_monthly_summary
from ..utils import next_month_start

logger = logging.getLogger(__name__)


def summarize_weeks(
    user_id: str, exercise_name: str, month_start: date, weeks: Sequence[WeeklySummary]
) -> MonthlySummary:
    volumes = [w.avg_volume for w in weeks if w.avg_volume is not None]
    one_rms = [w.max_one_rm for w in weeks if w.max_one_rm is not None]
    active_weeks = sum(1 for w in weeks if (w.session_count or 0) > 0)

    return MonthlySummary(
        user_id=user_id,
        exercise_name=exercise_name,
        month_start=month_start,
        total_volume=sum(volumes) if volumes else None,
        max_one_rm=max(one_rms) if one_rms else None,
        session_count=sum(w.session_count or 0 for w in weeks),
        consistency_score=active_weeks / len(weeks) if weeks else 0.0,
    )


async def aggregate_monthly(
    conn: psycopg.AsyncConnection[Any], user_id: str, exercise_name: str, month_start: date
) -> MonthlySummary | None:
    """Recompute and upsert the monthly summary. ``month_start`` is used as given."""
    t0 = time.monotonic()
    month_end = next_month_start(month_start)
    try:
        weeks = await fetch_weekly_summaries(conn, user_id, exercise_name, month_start, month_end)
        if not weeks:
            logger.debug(
                "No weekly summaries for monthly aggregation user=%s exercise=%s month_start=%s",
                user_id, exercise_name, month_start,
                extra=log_context(
                    user_id=user_id, exercise_name=exercise_name, month_start=month_start.isoformat()
                ),
            )
            return None

        summary = summarize_weeks(user_id, exercise_name, month_start, weeks)
        await upsert_monthly_summary(conn, summary)
    except Exception:
        logger.exception(
            "Monthly aggregation failed for user=%s exercise=%s month_start=%s",
            user_id, exercise_name, month_start,
            extra=log_context(
                user_id=user_id,
                exercise_name=exercise_name,
                month_start=month_start.isoformat(),
                duration_ms=round((time.monotonic() - t0) * 1000, 2),
            ),
        )
        raise

    logger.debug(
        "Monthly aggregation completed for user=%s exercise=%s month_start=%s (weeks=%d, consistency=%.2f)",
        user_id, exercise_name, month_start, len(weeks), summary.consistency_score,
        extra=log_context(
            user_id=user_id,
            exercise_name=exercise_name,
            month_start=month_start.isoformat(),
            record_count=len(weeks),
            total_volume=summary.total_volume,
            max_one_rm=summary.max_one_rm,
            session_count=summary.session_count,
            consistency_score=summary.consistency_score,
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
        ),
    )
    return summary
