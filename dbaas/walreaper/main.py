"""
walreaper - Command line entry point.

Runs exactly one reclaim cycle and exits. Scheduling (cron, systemd timers,
Kubernetes CronJobs) is external; the scheduler must not start a second run
while one is still going.

Usage:
    walreaper --wal-dir /var/lib/postgresql/16/main/pg_wal [options]

Configuration comes from environment variables (see config.py); flags
override them.

Exit status:
    0   cycle completed
    1   cycle aborted or timed out
    2   configuration error
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys

import json_log_formatter

from .config import DatabaseConfig, ObservabilityConfig, ReaperConfig, RetentionConfig, parse_duration
from .control import create_database_control
from .reclaim import ReclaimCycle, RunReport

logger = logging.getLogger(__name__)


def setup_logging(config: ReaperConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Reaper configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("psycopg").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Delete archived PostgreSQL WAL segments older than the retention threshold"
    )
    parser.add_argument("--wal-dir", help="pg_wal directory (env: WAL_DIR)")
    parser.add_argument("--retention", help="Retention threshold, e.g. 10d, 36h (env: WAL_RETENTION)")
    parser.add_argument("--dsn", help="PostgreSQL connection string (env: DATABASE_URL)")
    parser.add_argument("--dry-run", action="store_true", help="Report only, delete nothing")
    parser.add_argument("--no-sweep", action="store_true", help="Skip the orphan marker sweep")
    parser.add_argument(
        "--timeout", type=float, help="Abort the cycle after this many seconds (env: CYCLE_TIMEOUT_SECONDS)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    return parser


def load_config(args: argparse.Namespace) -> ReaperConfig:
    """Load environment configuration and apply CLI overrides.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    threshold = parse_duration(args.retention) if args.retention else None

    database = DatabaseConfig.from_env()
    retention = RetentionConfig.from_env(threshold=threshold)
    observability = ObservabilityConfig.from_env()

    if args.dsn:
        database = dataclasses.replace(database, dsn=args.dsn)

    overrides = {}
    if args.wal_dir:
        overrides["wal_dir"] = args.wal_dir
    if args.dry_run:
        overrides["dry_run"] = True
    if args.no_sweep:
        overrides["sweep_enabled"] = False
    if args.timeout is not None:
        overrides["cycle_timeout_seconds"] = args.timeout
    retention = dataclasses.replace(retention, **overrides)

    if args.verbose:
        observability = dataclasses.replace(observability, log_level="DEBUG")

    config = ReaperConfig(database=database, retention=retention, observability=observability)
    config.validate()
    return config


async def run_once(config: ReaperConfig) -> RunReport:
    """Run one cycle, bounded by the configured timeout.

    Raises:
        asyncio.TimeoutError: If the cycle exceeds cycle_timeout_seconds
    """
    control = create_database_control(config)
    cycle = ReclaimCycle.from_config(config, control)

    timeout = config.retention.cycle_timeout_seconds
    if timeout > 0:
        return await asyncio.wait_for(cycle.run(), timeout=timeout)
    return await cycle.run()


def print_report(report: RunReport) -> None:
    deletion = report.deletion
    verb = "Would delete" if report.dry_run else "Deleted"
    if report.aborted:
        print(f"Reclaim aborted: {report.error}")
        return
    print("Reclaim completed")
    print(f"  Active segment: {report.active_segment}")
    print(f"  {verb}: {deletion.deleted_count} segments")
    for reason, count in sorted(deletion.skip_reason_counts().items()):
        print(f"  Skipped ({reason}): {count}")
    if deletion.failed:
        print(f"  Failed: {', '.join(deletion.failed)}")
    if deletion.partial:
        print(f"  Marker left behind: {', '.join(deletion.partial)}")
    if report.sweep:
        print(
            f"  Swept: {len(report.sweep.markers_removed)} markers, "
            f"{len(report.sweep.labels_removed)} backup labels"
        )
    print(f"  Duration: {report.duration_ms}ms")


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config)
    config.log_config()

    try:
        report = asyncio.run(run_once(config))
    except asyncio.TimeoutError:
        logger.error(
            f"Reclaim cycle exceeded {config.retention.cycle_timeout_seconds}s, cancelled"
        )
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted; the next cycle starts from a fresh listing")
        sys.exit(1)

    print_report(report)
    sys.exit(0 if report.success else 1)


if __name__ == "__main__":
    main()
