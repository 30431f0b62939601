"""In-memory aggregation metrics.

Counters are only touched from the event loop thread, so plain dicts are safe.
"""

import time

_start_time = time.monotonic()

OUTCOMES = ("written", "no_data", "failed")


def _empty_metrics() -> dict:
    return {
        "triggers": 0,
        "skipped_keys": 0,
        "levels": {},
    }


_metrics: dict = _empty_metrics()


def record_stage(level: str, duration_ms: float, outcome: str) -> None:
    """Record one aggregation stage (daily/weekly/monthly) with timing."""
    if outcome not in OUTCOMES:
        raise ValueError(f"Unknown aggregation outcome: {outcome!r}")
    stats = _metrics["levels"].setdefault(level, {
        "invocations": 0,
        "written": 0,
        "no_data": 0,
        "failed": 0,
        "total_duration_ms": 0.0,
    })
    stats["invocations"] += 1
    stats["total_duration_ms"] += duration_ms
    stats[outcome] += 1


def record_trigger() -> None:
    _metrics["triggers"] += 1


def record_skip(count: int = 1) -> None:
    _metrics["skipped_keys"] += count


def reset_metrics() -> None:
    global _metrics
    _metrics = _empty_metrics()


def get_metrics() -> dict:
    """Return a snapshot of current metrics."""
    return {
        "uptime_seconds": round(time.monotonic() - _start_time, 1),
        "triggers": _metrics["triggers"],
        "skipped_keys": _metrics["skipped_keys"],
        "levels": {
            name: dict(stats)
            for name, stats in _metrics["levels"].items()
        },
    }
