"""Shared fixtures: an in-memory stand-in for the query helpers.

The store is patched over the helper names imported by the aggregator and
coordinator modules. Every helper yields to the event loop once, like a real
round-trip, so concurrent triggers interleave.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from workout_rollups.errors import StorageError
from workout_rollups.metrics import reset_metrics
from workout_rollups.models import (
    AggregationKey,
    DailySummary,
    MonthlySummary,
    RawSetRecord,
    WeeklySummary,
)


class _FakeTransaction:
    """Mimics psycopg's async transaction context manager."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


class FakeConnection:
    def __init__(self) -> None:
        self.closed = False
        self.transactions = 0

    def transaction(self):
        self.transactions += 1
        return _FakeTransaction()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.closed = True
        return False


class MemoryStore:
    def __init__(self) -> None:
        self.sets: list[RawSetRecord] = []
        self.daily: dict[tuple, DailySummary] = {}
        self.weekly: dict[tuple, WeeklySummary] = {}
        self.monthly: dict[tuple, MonthlySummary] = {}
        self.upserts: list[tuple[str, tuple]] = []
        # operation name -> exercise names that make it raise StorageError
        self.failures: dict[str, set[str]] = {}
        self.connections: list[FakeConnection] = []

    # --- test helpers ---

    def add_set(
        self,
        *,
        session_id: int,
        workout_date: date,
        exercise_name: str = "Bench Press",
        user_id: str = "user-1",
        **fields,
    ) -> None:
        self.sets.append(
            RawSetRecord(
                user_id=user_id,
                exercise_name=exercise_name,
                session_id=session_id,
                workout_date=workout_date,
                **fields,
            )
        )

    def fail(self, operation: str, exercise_name: str) -> None:
        self.failures.setdefault(operation, set()).add(exercise_name)

    def upsert_count(self, level: str, key: tuple | None = None) -> int:
        return sum(
            1 for lvl, k in self.upserts if lvl == level and (key is None or k == key)
        )

    async def connect(self) -> FakeConnection:
        await asyncio.sleep(0)
        conn = FakeConnection()
        self.connections.append(conn)
        return conn

    def _maybe_fail(self, operation: str, exercise_name: str) -> None:
        if exercise_name in self.failures.get(operation, set()):
            raise StorageError(operation, f"simulated failure for {exercise_name}")

    @staticmethod
    def _stamp(summary):
        return replace(summary, updated_at=datetime.now(timezone.utc))

    # --- query helper replacements ---

    async def fetch_session_exercise_keys(self, conn, session_id, user_id):
        await asyncio.sleep(0)
        pairs = {
            (s.exercise_name, s.workout_date)
            for s in self.sets
            if s.session_id == session_id and s.user_id == user_id
        }
        return [
            AggregationKey(user_id=user_id, exercise_name=name, date=day)
            for name, day in sorted(pairs, key=lambda p: (p[1], p[0]))
        ]

    async def fetch_raw_sets(self, conn, user_id, exercise_name, day):
        await asyncio.sleep(0)
        self._maybe_fail("fetch_raw_sets", exercise_name)
        return [
            s for s in self.sets
            if s.user_id == user_id and s.exercise_name == exercise_name and s.workout_date == day
        ]

    async def upsert_daily_summary(self, conn, summary):
        await asyncio.sleep(0)
        self._maybe_fail("upsert_daily_summary", summary.exercise_name)
        key = (summary.user_id, summary.exercise_name, summary.date)
        self.daily[key] = self._stamp(summary)
        self.upserts.append(("daily", key))

    async def fetch_daily_summaries(self, conn, user_id, exercise_name, start, end):
        await asyncio.sleep(0)
        self._maybe_fail("fetch_daily_summaries", exercise_name)
        rows = [
            row for (uid, name, day), row in self.daily.items()
            if uid == user_id and name == exercise_name and start <= day <= end
        ]
        return sorted(rows, key=lambda r: r.date)

    async def upsert_weekly_summary(self, conn, summary):
        await asyncio.sleep(0)
        self._maybe_fail("upsert_weekly_summary", summary.exercise_name)
        key = (summary.user_id, summary.exercise_name, summary.week_start)
        self.weekly[key] = self._stamp(summary)
        self.upserts.append(("weekly", key))

    async def fetch_weekly_summaries(self, conn, user_id, exercise_name, start, end_exclusive):
        await asyncio.sleep(0)
        self._maybe_fail("fetch_weekly_summaries", exercise_name)
        rows = [
            row for (uid, name, week_start), row in self.weekly.items()
            if uid == user_id and name == exercise_name and start <= week_start < end_exclusive
        ]
        return sorted(rows, key=lambda r: r.week_start)

    async def upsert_monthly_summary(self, conn, summary):
        await asyncio.sleep(0)
        self._maybe_fail("upsert_monthly_summary", summary.exercise_name)
        key = (summary.user_id, summary.exercise_name, summary.month_start)
        self.monthly[key] = self._stamp(summary)
        self.upserts.append(("monthly", key))


_PATCHES: dict[str, tuple[str, ...]] = {
    "workout_rollups.aggregators.daily": ("fetch_raw_sets", "upsert_daily_summary"),
    "workout_rollups.aggregators.weekly": ("fetch_daily_summaries", "upsert_weekly_summary"),
    "workout_rollups.aggregators.monthly": ("fetch_weekly_summaries", "upsert_monthly_summary"),
    "workout_rollups.coordinator": ("fetch_session_exercise_keys",),
}


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> MemoryStore:
    memory = MemoryStore()
    for module, names in _PATCHES.items():
        for name in names:
            monkeypatch.setattr(f"{module}.{name}", getattr(memory, name))
    return memory


@pytest.fixture
def conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture(autouse=True)
def _fresh_metrics():
    reset_metrics()
    yield
    reset_metrics()
