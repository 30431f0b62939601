"""Row types for raw sets and the three summary levels."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, field_validator


class RawSetRecord(BaseModel):
    """One per-set row owned by the session subsystem.

    Numeric fields stay ``None`` when absent so aggregates can skip them
    instead of counting them as zero.
    """

    user_id: str
    exercise_name: str
    session_id: int
    workout_date: date
    weight: float | None = None
    reps: int | None = None
    sets: int | None = None
    one_rm_estimate: float | None = None
    volume_load: float | None = None

    @field_validator("user_id", "exercise_name", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> str:
        return str(v)

    @field_validator("workout_date", mode="before")
    @classmethod
    def _as_date(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("weight", "one_rm_estimate", "volume_load", mode="before")
    @classmethod
    def _blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


@dataclass(frozen=True)
class AggregationKey:
    """(user, exercise, date) triple triggered by a session change."""

    user_id: str
    exercise_name: str
    date: date


@dataclass(frozen=True)
class DailySummary:
    user_id: str
    exercise_name: str
    date: date
    total_volume: float | None
    max_weight: float | None
    max_one_rm: float | None
    session_count: int
    updated_at: datetime | None = None


@dataclass(frozen=True)
class WeeklySummary:
    user_id: str
    exercise_name: str
    week_start: date
    avg_volume: float | None
    max_one_rm: float | None
    session_count: int
    trend_slope: float | None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class MonthlySummary:
    user_id: str
    exercise_name: str
    month_start: date
    total_volume: float | None
    max_one_rm: float | None
    session_count: int
    consistency_score: float
    updated_at: datetime | None = None
