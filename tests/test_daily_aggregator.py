"""Tests for the daily aggregator."""

from datetime import date

import pytest

from workout_rollups.aggregators.daily import aggregate_daily, summarize_sets
from workout_rollups.errors import StorageError
from workout_rollups.models import DailySummary, RawSetRecord

DAY = date(2024, 1, 15)


def _set(session_id: int, **fields) -> RawSetRecord:
    return RawSetRecord(
        user_id="user-1",
        exercise_name="Bench Press",
        session_id=session_id,
        workout_date=DAY,
        **fields,
    )


class TestSummarizeSets:
    def test_multiple_sets(self):
        sets = [
            _set(1, weight=100, reps=10, sets=3, one_rm_estimate=110, volume_load=3000),
            _set(1, weight=105, reps=8, sets=3, one_rm_estimate=115, volume_load=2520),
            _set(2, weight=100, reps=10, sets=2, one_rm_estimate=110, volume_load=2000),
        ]
        summary = summarize_sets("user-1", "Bench Press", DAY, sets)
        assert summary.total_volume == 7520
        assert summary.max_weight == 105
        assert summary.max_one_rm == 115
        assert summary.session_count == 2

    def test_null_fields_excluded_from_sum_and_max(self):
        sets = [
            _set(1, volume_load=None, weight=100),
            _set(1, volume_load=3000, weight=105),
        ]
        summary = summarize_sets("user-1", "Bench Press", DAY, sets)
        assert summary.total_volume == 3000
        assert summary.max_weight == 105

    def test_counts_distinct_sessions_not_rows(self):
        sets = [_set(1, volume_load=100), _set(1, volume_load=100), _set(2, volume_load=100)]
        assert summarize_sets("user-1", "Bench Press", DAY, sets).session_count == 2

    def test_all_null_numeric_fields(self):
        summary = summarize_sets("user-1", "Bench Press", DAY, [_set(1)])
        assert summary.total_volume is None
        assert summary.max_weight is None
        assert summary.max_one_rm is None
        assert summary.session_count == 1

    def test_zero_volume_is_kept(self):
        summary = summarize_sets("user-1", "Bench Press", DAY, [_set(1, volume_load=0)])
        assert summary.total_volume == 0


class TestAggregateDaily:
    @pytest.mark.asyncio
    async def test_writes_summary(self, store, conn):
        store.add_set(session_id=1, workout_date=DAY, weight=100, one_rm_estimate=110, volume_load=3000)
        store.add_set(session_id=2, workout_date=DAY, weight=90, one_rm_estimate=100, volume_load=1800)

        result = await aggregate_daily(conn, "user-1", "Bench Press", DAY)

        assert result == DailySummary(
            user_id="user-1",
            exercise_name="Bench Press",
            date=DAY,
            total_volume=4800,
            max_weight=100,
            max_one_rm=110,
            session_count=2,
        )
        stored = store.daily[("user-1", "Bench Press", DAY)]
        assert stored.total_volume == 4800
        assert stored.updated_at is not None

    @pytest.mark.asyncio
    async def test_ignores_other_days_and_exercises(self, store, conn):
        store.add_set(session_id=1, workout_date=DAY, volume_load=1000)
        store.add_set(session_id=2, workout_date=date(2024, 1, 16), volume_load=5000)
        store.add_set(session_id=1, workout_date=DAY, exercise_name="Squat", volume_load=9000)

        result = await aggregate_daily(conn, "user-1", "Bench Press", DAY)
        assert result is not None
        assert result.total_volume == 1000

    @pytest.mark.asyncio
    async def test_idempotent(self, store, conn):
        store.add_set(session_id=1, workout_date=DAY, weight=100, one_rm_estimate=110, volume_load=3000)

        first = await aggregate_daily(conn, "user-1", "Bench Press", DAY)
        second = await aggregate_daily(conn, "user-1", "Bench Press", DAY)

        assert first == second
        assert store.upsert_count("daily") == 2
        assert len(store.daily) == 1

    @pytest.mark.asyncio
    async def test_no_sets_skips_write_and_keeps_existing_row(self, store, conn):
        existing = DailySummary(
            user_id="user-1",
            exercise_name="Bench Press",
            date=DAY,
            total_volume=1234,
            max_weight=80,
            max_one_rm=90,
            session_count=1,
        )
        store.daily[("user-1", "Bench Press", DAY)] = existing

        result = await aggregate_daily(conn, "user-1", "Bench Press", DAY)

        assert result is None
        assert store.upsert_count("daily") == 0
        assert store.daily[("user-1", "Bench Press", DAY)] is existing

    @pytest.mark.asyncio
    async def test_no_sets_logs_debug(self, store, conn, caplog):
        with caplog.at_level("DEBUG", logger="workout_rollups.aggregators.daily"):
            await aggregate_daily(conn, "user-1", "Squat", DAY)
        assert any("No raw sets" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_storage_error_logged_and_reraised(self, store, conn, caplog):
        store.add_set(session_id=1, workout_date=DAY, volume_load=100)
        store.fail("upsert_daily_summary", "Bench Press")

        with caplog.at_level("ERROR", logger="workout_rollups.aggregators.daily"):
            with pytest.raises(StorageError, match="upsert_daily_summary"):
                await aggregate_daily(conn, "user-1", "Bench Press", DAY)

        errors = [r for r in caplog.records if r.levelname == "ERROR"]
        assert len(errors) == 1
        assert errors[0].rollup_user_id == "user-1"
        assert errors[0].rollup_exercise_name == "Bench Press"
        assert errors[0].exc_info is not None
