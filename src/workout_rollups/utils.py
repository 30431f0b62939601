"""Calendar boundary helpers used by the coordinator."""

from datetime import date, timedelta

DAYS_PER_WEEK = 7


def week_start_for(day: date) -> date:
    """Return the Monday on or before ``day``."""
    return day - timedelta(days=day.weekday())


def week_end_for(week_start: date) -> date:
    """Last day (inclusive) of the week beginning at ``week_start``."""
    return week_start + timedelta(days=DAYS_PER_WEEK - 1)


def month_start_for(day: date) -> date:
    return day.replace(day=1)


def next_month_start(month_start: date) -> date:
    """First day of the month after ``month_start``'s month."""
    if month_start.month == 12:
        return date(month_start.year + 1, 1, 1)
    return date(month_start.year, month_start.month + 1, 1)
