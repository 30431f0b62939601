"""Aggregation trigger coordinator.

Called by the session subsystem after any change to a session's exercises.
Re-derives the (exercise, date) keys the session touches and cascades each
one Daily → Weekly → Monthly. Each level runs in its own transaction and
commits before the next level reads it.

Keys are cascaded in chunks of ``Config.key_chunk_size``. The cascades of
one chunk run concurrently, each on its own connection, and the next chunk
starts once every cascade of the previous one has settled.

Concurrent triggers for the same key are deduplicated in-process through a
ProcessingKeySet: the first caller owns the key until its cascade ends,
later callers skip it. This is not a distributed lock. Separate processes
can cascade the same key twice, which is harmless because every write is a
full-value upsert.

Failures never reach the caller. A failing key is logged, its cascade stops,
and its siblings still run. The summaries stay stale until the next
successful trigger for that key.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from functools import partial
from typing import Any

import psycopg

from .aggregators import aggregate_daily, aggregate_monthly, aggregate_weekly
from .config import Config
from .logging import log_context
from .metrics import record_skip, record_stage, record_trigger
from .models import AggregationKey
from .queries import fetch_session_exercise_keys
from .utils import month_start_for, week_start_for

logger = logging.getLogger(__name__)

ConnectFn = Callable[[], Awaitable[Any]]


class ProcessingKeySet:
    """Keys whose cascade is currently in flight in this process.

    Only touched from the event loop thread and never across an await, so a
    plain set is safe.
    """

    def __init__(self) -> None:
        self._keys: set[AggregationKey] = set()

    def claim(self, keys: Iterable[AggregationKey]) -> list[AggregationKey]:
        """Add every key not already present; return the newly claimed ones in order."""
        claimed: list[AggregationKey] = []
        for key in keys:
            if key in self._keys:
                continue
            self._keys.add(key)
            claimed.append(key)
        return claimed

    def release(self, keys: Iterable[AggregationKey]) -> None:
        for key in keys:
            self._keys.discard(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class AggregationCoordinator:
    """Process-scoped entry point. Construct once and pass it to callers."""

    def __init__(self, config: Config, *, connect: ConnectFn | None = None) -> None:
        self.config = config
        self.processing = ProcessingKeySet()
        self._connect: ConnectFn = connect or partial(
            psycopg.AsyncConnection.connect, config.database_url, autocommit=True
        )

    async def on_session_change(self, session_id: int, user_id: str) -> None:
        """Refresh every summary touched by ``session_id``. Never raises."""
        record_trigger()
        pending: list[AggregationKey] = []
        try:
            async with await self._connect() as conn:
                keys = await fetch_session_exercise_keys(conn, session_id, user_id)
            if not keys:
                logger.debug(
                    "No exercises found for session=%s user=%s, nothing to aggregate",
                    session_id, user_id,
                    extra=log_context(session_id=session_id, user_id=user_id),
                )
                return

            pending = self.processing.claim(keys)
            skipped = len(keys) - len(pending)
            if skipped:
                record_skip(skipped)
                logger.debug(
                    "Skipping %d key(s) already in flight for session=%s user=%s",
                    skipped, session_id, user_id,
                    extra=log_context(session_id=session_id, user_id=user_id, skipped=skipped),
                )

            claimed = list(pending)
            size = self.config.key_chunk_size
            for i in range(0, len(claimed), size):
                chunk = claimed[i:i + size]
                results = await asyncio.gather(
                    *(self._run_key(session_id, key, pending) for key in chunk),
                    return_exceptions=True,
                )
                for key, result in zip(chunk, results):
                    if isinstance(result, BaseException):
                        logger.error(
                            "Aggregation cascade failed for session=%s user=%s exercise=%s date=%s",
                            session_id, key.user_id, key.exercise_name, key.date,
                            exc_info=result,
                            extra=log_context(
                                session_id=session_id,
                                user_id=key.user_id,
                                exercise_name=key.exercise_name,
                                date=key.date.isoformat(),
                            ),
                        )
        except Exception:
            logger.exception(
                "Session change trigger failed for session=%s user=%s",
                session_id, user_id,
                extra=log_context(session_id=session_id, user_id=user_id),
            )
        finally:
            # keys never reached, e.g. when the trigger is cancelled mid-way
            self.processing.release(pending)

    async def _run_key(
        self, session_id: int, key: AggregationKey, pending: list[AggregationKey]
    ) -> None:
        try:
            async with await self._connect() as conn:
                await self._cascade(conn, session_id, key)
        finally:
            pending.remove(key)
            self.processing.release([key])

    async def _cascade(
        self, conn: psycopg.AsyncConnection[Any], session_id: int, key: AggregationKey
    ) -> None:
        week_start = week_start_for(key.date)
        month_start = month_start_for(key.date)
        stages: list[tuple[str, Callable[[], Awaitable[Any]]]] = [
            ("daily", partial(aggregate_daily, conn, key.user_id, key.exercise_name, key.date)),
            ("weekly", partial(aggregate_weekly, conn, key.user_id, key.exercise_name, week_start)),
            ("monthly", partial(aggregate_monthly, conn, key.user_id, key.exercise_name, month_start)),
        ]

        for level, run in stages:
            t0 = time.monotonic()
            try:
                async with conn.transaction():
                    result = await run()
            except Exception:
                record_stage(level, (time.monotonic() - t0) * 1000, "failed")
                logger.exception(
                    "Aggregation cascade stopped at %s for session=%s user=%s exercise=%s date=%s",
                    level, session_id, key.user_id, key.exercise_name, key.date,
                    extra=log_context(
                        session_id=session_id,
                        user_id=key.user_id,
                        exercise_name=key.exercise_name,
                        date=key.date.isoformat(),
                        level=level,
                    ),
                )
                return
            outcome = "written" if result is not None else "no_data"
            record_stage(level, (time.monotonic() - t0) * 1000, outcome)
