"""Operator command line for the rollup engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Sequence

import psycopg

from .config import Config
from .coordinator import AggregationCoordinator
from .logging import setup_logging
from .metrics import get_metrics
from .schema import ensure_summary_tables

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="workout-rollups",
        description="Maintain daily, weekly and monthly exercise summaries.",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser(
        "init-schema",
        help="Create the summary tables if they do not exist.",
    )

    changed = subcommands.add_parser(
        "session-changed",
        help="Re-aggregate every exercise/date touched by a workout session.",
    )
    changed.add_argument(
        "--session-id",
        required=True,
        type=int,
        help="Workout session id whose exercises changed.",
    )
    changed.add_argument(
        "--user-id",
        required=True,
        help="Owner of the session.",
    )
    return parser


async def _init_schema(config: Config) -> int:
    async with await psycopg.AsyncConnection.connect(config.database_url) as conn:
        await ensure_summary_tables(conn)
        await conn.commit()
    return 0


async def _session_changed(config: Config, args: argparse.Namespace) -> int:
    coordinator = AggregationCoordinator(config)
    await coordinator.on_session_change(args.session_id, args.user_id)
    print(json.dumps(get_metrics(), indent=2, sort_keys=True))
    return 0


async def _run(args: argparse.Namespace) -> int:
    config = Config.from_env()
    setup_logging(config.log_format, config.log_level)
    logger.info("Running %s", args.command)

    if args.command == "init-schema":
        return await _init_schema(config)
    return await _session_changed(config, args)


def main(argv: Sequence[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    raise SystemExit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
