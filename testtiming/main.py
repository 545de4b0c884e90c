"""Composition root for testtiming.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for the application.

Query test timing data from LUCI and print it as CSV:

    commit hash, commit time, [builder,] status, pass duration, fail duration

The builder column is omitted if only one builder is queried (--builder).
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone

from testtiming.adapters.cli.csv_output import write_timings
from testtiming.adapters.luci.buildbucket import BuildbucketClient
from testtiming.adapters.luci.gitiles import GitilesSourceLog
from testtiming.adapters.luci.resultdb import ResultDBClient
from testtiming.config import Settings, load_settings
from testtiming.core.dashboard import DashboardAssembler
from testtiming.core.errors import InvariantViolationError
from testtiming.core.models import Dashboard, Project
from testtiming.core.sources import BuilderRegistry, BuildFetcher, SourceLogClient
from testtiming.core.timing import TestTimingExtractor


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="testtiming",
        description="Query test timing data from LUCI and print it as CSV.",
    )
    parser.add_argument("--repo", default="go", help='repo name (default: "go")')
    parser.add_argument("--branch", default="master", help='branch (default: "master")')
    parser.add_argument(
        "--builder",
        default="",
        help="builder to query; if unset, query all builders",
    )
    parser.add_argument("--test", default="", help="test name (required)")
    parser.add_argument(
        "--since-days",
        type=int,
        default=None,
        help="how many days back to query (default: LOOKBACK_DAYS, 60)",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Exits with usage and status 2 if the test name is missing.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.test:
        parser.print_usage(sys.stderr)
        parser.exit(2, f"{parser.prog}: error: test name unset\n")
    if args.since_days is not None and args.since_days <= 0:
        parser.error("--since-days must be positive")
    return args


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Logs go to stderr; stdout carries only CSV.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
    )


async def run(args: argparse.Namespace, settings: Settings) -> int:
    """Wire adapters and core services, then print the timing CSV.

    Steps:
    1. Instantiate LUCI adapters with configuration
    2. Initialize core services
    3. Assemble the dashboard
    4. Extract timings and write CSV to stdout

    Returns:
        Number of CSV lines written.
    """
    logger = logging.getLogger(__name__)
    timeout = settings.http_timeout_seconds

    gitiles = GitilesSourceLog(settings.gitiles_host, timeout=timeout)
    buildbucket = BuildbucketClient(settings.buildbucket_host, timeout=timeout)
    resultdb = ResultDBClient(settings.resultdb_host, timeout=timeout)
    try:
        assembler = DashboardAssembler(
            source_log=SourceLogClient(
                gitiles,
                page_size=settings.page_size,
                trace_steps=settings.trace_steps,
            ),
            registry=BuilderRegistry(
                buildbucket,
                project=settings.luci_project,
                bucket=settings.luci_bucket,
                page_size=settings.page_size,
                trace_steps=settings.trace_steps,
            ),
            fetcher=BuildFetcher(
                buildbucket,
                project=settings.luci_project,
                bucket=settings.luci_bucket,
                page_size=settings.page_size,
                trace_steps=settings.trace_steps,
            ),
            expected_resultdb_host=settings.resultdb_host,
            max_parallelism=settings.max_parallelism,
            trace_steps=settings.trace_steps,
        )
        extractor = TestTimingExtractor(resultdb, trace_steps=settings.trace_steps)

        lookback_days = args.since_days or settings.lookback_days
        since = datetime.now(timezone.utc) - timedelta(days=lookback_days)
        dashboard = Dashboard(project=Project(repo=args.repo, go_branch=args.branch))
        await assembler.read_board(dashboard, args.builder, since)
        logger.info(
            f"Read {len(dashboard.builders)} builders and "
            f"{len(dashboard.commits)} commits since {since:%Y-%m-%d}"
        )

        lines = await write_timings(
            extractor.extract(dashboard, args.test),
            sys.stdout,
            include_builder=len(dashboard.builders) > 1,
        )
        sys.stdout.flush()
        return lines
    finally:
        await gitiles.close()
        await buildbucket.close()
        await resultdb.close()


def main(argv: list[str] | None = None) -> None:
    """Application entry point.

    Exit codes:
        0: Success
        1: Fatal runtime error (remote failure, invariant violation)
        2: Usage error
        130: Interrupted by user (SIGINT/KeyboardInterrupt)
    """
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)
    try:
        asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        logger.warning("Interrupted by user (SIGINT)")
        sys.exit(130)
    except InvariantViolationError as e:
        logger.error(f"Unexpected upstream API change: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
