"""Shared read and upsert helpers over the raw and summary tables.

Every helper takes an open async connection and performs exactly one
statement. psycopg errors and raw rows that fail validation surface as
StorageError.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

import psycopg
from psycopg.rows import dict_row
from pydantic import ValidationError

from .errors import StorageError
from .models import (
    AggregationKey,
    DailySummary,
    MonthlySummary,
    RawSetRecord,
    WeeklySummary,
)


@asynccontextmanager
async def _storage(operation: str) -> AsyncIterator[None]:
    try:
        yield
    except (psycopg.Error, ValidationError) as exc:
        raise StorageError(operation, str(exc)) from exc


async def fetch_session_exercise_keys(
    conn: psycopg.AsyncConnection[Any], session_id: int, user_id: str
) -> list[AggregationKey]:
    """Distinct (exercise, workout date) pairs currently attached to a session."""
    async with _storage("fetch_session_exercise_keys"):
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                SELECT DISTINCT
                    se.resolved_exercise_name AS exercise_name,
                    s.workout_date::date AS workout_date
                FROM session_exercises se
                JOIN workout_sessions s ON s.id = se.session_id
                WHERE se.session_id = %s
                  AND se.user_id = %s
                  AND se.resolved_exercise_name IS NOT NULL
                ORDER BY workout_date, exercise_name
                """,
                (session_id, user_id),
            )
            rows = await cur.fetchall()
    return [
        AggregationKey(user_id=str(user_id), exercise_name=row["exercise_name"], date=row["workout_date"])
        for row in rows
    ]


async def fetch_raw_sets(
    conn: psycopg.AsyncConnection[Any], user_id: str, exercise_name: str, day: date
) -> list[RawSetRecord]:
    async with _storage("fetch_raw_sets"):
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                SELECT
                    se.user_id,
                    se.resolved_exercise_name AS exercise_name,
                    se.session_id,
                    s.workout_date::date AS workout_date,
                    se.weight,
                    se.reps,
                    se.sets,
                    se.one_rm_estimate,
                    se.volume_load
                FROM session_exercises se
                JOIN workout_sessions s
                  ON s.id = se.session_id
                 AND s.user_id = %s
                 AND s.workout_date::date = %s
                WHERE se.user_id = %s
                  AND se.resolved_exercise_name = %s
                """,
                (user_id, day, user_id, exercise_name),
            )
            rows = await cur.fetchall()
        return [RawSetRecord.model_validate(row) for row in rows]


async def upsert_daily_summary(
    conn: psycopg.AsyncConnection[Any], summary: DailySummary
) -> None:
    async with _storage("upsert_daily_summary"):
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO exercise_daily_summary (
                    user_id, exercise_name, date,
                    total_volume, max_weight, max_one_rm, session_count, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
                ON CONFLICT (user_id, exercise_name, date) DO UPDATE SET
                    total_volume = EXCLUDED.total_volume,
                    max_weight = EXCLUDED.max_weight,
                    max_one_rm = EXCLUDED.max_one_rm,
                    session_count = EXCLUDED.session_count,
                    updated_at = NOW()
                """,
                (
                    summary.user_id,
                    summary.exercise_name,
                    summary.date,
                    summary.total_volume,
                    summary.max_weight,
                    summary.max_one_rm,
                    summary.session_count,
                ),
            )


async def fetch_daily_summaries(
    conn: psycopg.AsyncConnection[Any],
    user_id: str,
    exercise_name: str,
    start: date,
    end: date,
) -> list[DailySummary]:
    """Daily rows with ``start <= date <= end``, oldest first."""
    async with _storage("fetch_daily_summaries"):
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                SELECT user_id, exercise_name, date, total_volume, max_weight,
                       max_one_rm, session_count, updated_at
                FROM exercise_daily_summary
                WHERE user_id = %s
                  AND exercise_name = %s
                  AND date >= %s
                  AND date <= %s
                ORDER BY date ASC
                """,
                (user_id, exercise_name, start, end),
            )
            rows = await cur.fetchall()
    return [DailySummary(**row) for row in rows]


async def upsert_weekly_summary(
    conn: psycopg.AsyncConnection[Any], summary: WeeklySummary
) -> None:
    async with _storage("upsert_weekly_summary"):
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO exercise_weekly_summary (
                    user_id, exercise_name, week_start,
                    avg_volume, max_one_rm, session_count, trend_slope, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
                ON CONFLICT (user_id, exercise_name, week_start) DO UPDATE SET
                    avg_volume = EXCLUDED.avg_volume,
                    max_one_rm = EXCLUDED.max_one_rm,
                    session_count = EXCLUDED.session_count,
                    trend_slope = EXCLUDED.trend_slope,
                    updated_at = NOW()
                """,
                (
                    summary.user_id,
                    summary.exercise_name,
                    summary.week_start,
                    summary.avg_volume,
                    summary.max_one_rm,
                    summary.session_count,
                    summary.trend_slope,
                ),
            )


async def fetch_weekly_summaries(
    conn: psycopg.AsyncConnection[Any],
    user_id: str,
    exercise_name: str,
    start: date,
    end_exclusive: date,
) -> list[WeeklySummary]:
    """Weekly rows with ``start <= week_start < end_exclusive``, oldest first."""
    async with _storage("fetch_weekly_summaries"):
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(
                """
                SELECT user_id, exercise_name, week_start, avg_volume, max_one_rm,
                       session_count, trend_slope, updated_at
                FROM exercise_weekly_summary
                WHERE user_id = %s
                  AND exercise_name = %s
                  AND week_start >= %s
                  AND week_start < %s
                ORDER BY week_start ASC
                """,
                (user_id, exercise_name, start, end_exclusive),
            )
            rows = await cur.fetchall()
    return [WeeklySummary(**row) for row in rows]


async def upsert_monthly_summary(
    conn: psycopg.AsyncConnection[Any], summary: MonthlySummary
) -> None:
    async with _storage("upsert_monthly_summary"):
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO exercise_monthly_summary (
                    user_id, exercise_name, month_start,
                    total_volume, max_one_rm, session_count, consistency_score, updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
                ON CONFLICT (user_id, exercise_name, month_start) DO UPDATE SET
                    total_volume = EXCLUDED.total_volume,
                    max_one_rm = EXCLUDED.max_one_rm,
                    session_count = EXCLUDED.session_count,
                    consistency_score = EXCLUDED.consistency_score,
                    updated_at = NOW()
                """,
                (
                    summary.user_id,
                    summary.exercise_name,
                    summary.month_start,
                    summary.total_volume,
                    summary.max_one_rm,
                    summary.session_count,
                    summary.consistency_score,
                ),
            )
