"""Summary table DDL.

The engine owns the three summary tables. Raw session tables belong to the
session subsystem and are never created here.
"""

import logging
from typing import Any

import psycopg

from .errors import StorageError

logger = logging.getLogger(__name__)

SUMMARY_TABLES: tuple[str, ...] = (
    "exercise_daily_summary",
    "exercise_weekly_summary",
    "exercise_monthly_summary",
)

_DDL: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS exercise_daily_summary (
        user_id TEXT NOT NULL,
        exercise_name TEXT NOT NULL,
        date DATE NOT NULL,
        total_volume DOUBLE PRECISION,
        max_weight DOUBLE PRECISION,
        max_one_rm DOUBLE PRECISION,
        session_count INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (user_id, exercise_name, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS exercise_weekly_summary (
        user_id TEXT NOT NULL,
        exercise_name TEXT NOT NULL,
        week_start DATE NOT NULL,
        avg_volume DOUBLE PRECISION,
        max_one_rm DOUBLE PRECISION,
        session_count INTEGER NOT NULL DEFAULT 0,
        trend_slope DOUBLE PRECISION,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (user_id, exercise_name, week_start)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS exercise_monthly_summary (
        user_id TEXT NOT NULL,
        exercise_name TEXT NOT NULL,
        month_start DATE NOT NULL,
        total_volume DOUBLE PRECISION,
        max_one_rm DOUBLE PRECISION,
        session_count INTEGER NOT NULL DEFAULT 0,
        consistency_score DOUBLE PRECISION NOT NULL DEFAULT 0
            CHECK (consistency_score >= 0 AND consistency_score <= 1),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (user_id, exercise_name, month_start)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_exercise_daily_summary_user_exercise "
    "ON exercise_daily_summary (user_id, exercise_name)",
    "CREATE INDEX IF NOT EXISTS idx_exercise_weekly_summary_user_exercise "
    "ON exercise_weekly_summary (user_id, exercise_name)",
    "CREATE INDEX IF NOT EXISTS idx_exercise_monthly_summary_user_exercise "
    "ON exercise_monthly_summary (user_id, exercise_name)",
)


async def ensure_summary_tables(conn: psycopg.AsyncConnection[Any]) -> None:
    """Create the summary tables and their lookup indexes if missing."""
    try:
        async with conn.cursor() as cur:
            for statement in _DDL:
                await cur.execute(statement)
    except psycopg.Error as exc:
        raise StorageError("ensure_summary_tables", str(exc)) from exc
    logger.info("Summary tables ensured: %s", ", ".join(SUMMARY_TABLES))
