"""Daily aggregator: raw sets for one (user, exercise, date) → DailySummary.

A day with no raw sets is left alone. An existing summary row for that day
is not deleted, so a fully removed workout keeps its last daily figures.
"""

import logging
import time
from collections.abc import Sequence
from datetime import date
from typing import Any

import psycopg

from ..logging import log_context
from ..models import DailySummary, RawSetRecord
from ..queries import fetch_raw_sets, upsert_daily_summary

logger = logging.getLogger(__name__)


def summarize_sets(
    user_id: str, exercise_name: str, day: date, sets: Sequence[RawSetRecord]
) -> DailySummary:
    """Reduce raw sets to a daily summary. Null numeric fields are skipped."""
    volumes = [s.volume_load for s in sets if s.volume_load is not None]
    weights = [s.weight for s in sets if s.weight is not None]
    one_rms = [s.one_rm_estimate for s in sets if s.one_rm_estimate is not None]

    return DailySummary(
        user_id=user_id,
        exercise_name=exercise_name,
        date=day,
        total_volume=sum(volumes) if volumes else None,
        max_weight=max(weights) if weights else None,
        max_one_rm=max(one_rms) if one_rms else None,
        session_count=len({s.session_id for s in sets}),
    )


async def aggregate_daily(
    conn: psycopg.AsyncConnection[Any], user_id: str, exercise_name: str, day: date
) -> DailySummary | None:
    """Recompute and upsert the daily summary. Returns None when no sets match."""
    t0 = time.monotonic()
    try:
        sets = await fetch_raw_sets(conn, user_id, exercise_name, day)
        if not sets:
            logger.debug(
                "No raw sets for daily aggregation user=%s exercise=%s date=%s",
                user_id, exercise_name, day,
                extra=log_context(user_id=user_id, exercise_name=exercise_name, date=day.isoformat()),
            )
            return None

        summary = summarize_sets(user_id, exercise_name, day, sets)
        await upsert_daily_summary(conn, summary)
    except Exception:
        logger.exception(
            "Daily aggregation failed for user=%s exercise=%s date=%s",
            user_id, exercise_name, day,
            extra=log_context(
                user_id=user_id,
                exercise_name=exercise_name,
                date=day.isoformat(),
                duration_ms=round((time.monotonic() - t0) * 1000, 2),
            ),
        )
        raise

    logger.debug(
        "Daily aggregation completed for user=%s exercise=%s date=%s (sets=%d, sessions=%d)",
        user_id, exercise_name, day, len(sets), summary.session_count,
        extra=log_context(
            user_id=user_id,
            exercise_name=exercise_name,
            date=day.isoformat(),
            record_count=len(sets),
            total_volume=summary.total_volume,
            max_weight=summary.max_weight,
            max_one_rm=summary.max_one_rm,
            session_count=summary.session_count,
            duration_ms=round((time.monotonic() - t0) * 1000, 2),
        ),
    )
    return summary
