"""
Scripts - Run Ingestion.

============================================================
RESPONSIBILITY
============================================================
Operator entry point for the market data sync engine.

- Wires config -> registry -> fetcher -> collectors -> sink
- Runs a single pass, a backfill, or continuous sync
- Handles graceful shutdown on SIGINT / SIGTERM

============================================================
USAGE
============================================================
python -m scripts.run_ingestion --once
python -m scripts.run_ingestion --backfill
python -m scripts.run_ingestion --interval 5 --config ingestion.yaml

Exit code is 0 whenever the pass completed, regardless of
per-source outcomes.

============================================================
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import httpx

from core.clock import SystemClock
from data_ingestion.backfill import BackfillEngine
from data_ingestion.config import IngestionConfig
from data_ingestion.exceptions import ConfigurationError, StorageWriteError
from data_ingestion.fetcher import RateLimitedFetcher
from data_ingestion.orchestrator import SyncOrchestrator, build_default_steps
from data_ingestion.scheduler import SyncScheduler
from data_ingestion.sources import SourceRegistry
from storage.database import (
    create_all_tables,
    create_database_engine,
    dispose_engines,
    get_database_url,
)
from storage.sink import PersistenceSink


logger = logging.getLogger("scripts.run_ingestion")


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """Configure the root logger."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        fmt = json.dumps({
            "timestamp": "%(asctime)s",
            "level": "%(levelname)s",
            "logger": "%(name)s",
            "message": "%(message)s",
        })
    else:
        fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    logging.basicConfig(level=log_level, format=fmt, stream=sys.stdout, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="run-ingestion",
        description="Multi-source market data sync engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --once                  # One pass over every source, then exit
  %(prog)s --backfill              # Historical backfill, then exit
  %(prog)s --interval 5            # Continuous sync every 5 minutes
  %(prog)s --init-db --once        # Create tables first
        """,
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync pass and exit",
    )
    mode_group.add_argument(
        "--backfill",
        action="store_true",
        help="Run the historical backfill and exit",
    )
    mode_group.add_argument(
        "--interval",
        type=float,
        metavar="MINUTES",
        help="Continuous sync interval (default: from config, 5)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="YAML config file; environment variables are applied on top",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables before running",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default="text",
        help="Logging format (default: text)",
    )

    return parser


def build_config(args: argparse.Namespace) -> IngestionConfig:
    """
    YAML (if given) then environment overrides.

    Raises:
        ConfigurationError: On invalid values
    """
    base = IngestionConfig.from_yaml(args.config) if args.config else None
    config = IngestionConfig.from_env(base=base)
    if args.interval is not None:
        config.sync_interval_minutes = args.interval
        config.validate()
    return config


# ============================================================
# RUN MODES
# ============================================================

async def run_continuous(scheduler: SyncScheduler, interval_minutes: float) -> None:
    """Run the scheduler until SIGINT / SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    scheduler.start(interval_minutes)
    await scheduler.wait_stopped()


async def async_main(args: argparse.Namespace) -> int:
    """
    Async main entry point.

    Returns:
        Exit code
    """
    config = build_config(args)
    logger.info(f"Ingestion config: {config.to_dict()}")

    database_url = get_database_url(config.database_url)
    if args.init_db:
        if database_url is None:
            logger.error("--init-db requires DATABASE_URL")
            return 1
        create_all_tables(create_database_engine(database_url))

    clock = SystemClock()
    registry = SourceRegistry.from_config(config)
    for source in registry:
        logger.info(
            f"Source {source.name}: {source.base_url} "
            f"({source.rate_limit_per_minute}/min, priority {source.priority})"
        )
    sink = PersistenceSink.from_env(database_url) if database_url else PersistenceSink()

    try:
        async with httpx.AsyncClient(timeout=config.http_timeout_seconds) as client:
            fetcher = RateLimitedFetcher(client=client, clock=clock)

            if args.backfill:
                engine = BackfillEngine.from_config(config, registry, fetcher, sink, clock)
                report = await engine.backfill()
                logger.info(f"Backfill report: {report.to_dict()}")
                return 0

            orchestrator = SyncOrchestrator(
                build_default_steps(config, registry, fetcher, clock),
                sink,
                clock,
            )

            if args.once:
                await orchestrator.run_pass()
                return 0

            await run_continuous(SyncScheduler(orchestrator, clock), config.sync_interval_minutes)
            summary = orchestrator.last_summary
            if summary is not None:
                logger.info(f"Last pass: {summary.describe()}")
            return 0
    finally:
        dispose_engines()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    try:
        return asyncio.run(async_main(args))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except StorageWriteError as e:
        logger.error(f"Database initialization failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
