"""Application entrypoint for miniflux-filter.

This script orchestrates the high-level flow:
1) load configuration (.env, environment, CLI flags)
2) check connectivity against Miniflux
3) run filtering cycles on a fixed interval (or once, or a rules-only mode)
"""

from __future__ import annotations

import argparse
import os
import signal
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from . import __version__
from .fetchers import MinifluxClient
from .orchestrator import CycleResult, Orchestrator, collect_stats
from .rules import RuleStoreError, check_rule_files, create_example_rule_set, rule_set_path
from .scheduler import PollScheduler, StartupError
from .utils.config_loader import ConfigError, load_app_config
from .utils.logging import LogCollector, configure_logging, get_logger

LOG_BUFFER_SIZE = 50


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="miniflux-filter",
        description="Mark Miniflux entries as read when they match per-feed rules",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: MINIFLUX_FILTER_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--rules-dir",
        default=None,
        help="Directory holding YAML or TOML rule files (default: MINIFLUX_FILTER_RULES_DIR or ./rules)",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between filtering cycles (default: MINIFLUX_FILTER_POLL_INTERVAL or 300)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single filtering cycle and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate rules and log matches without marking entries as read",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate every rule file and exit; non-zero exit on any invalid file",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print rule set statistics and exit",
    )
    parser.add_argument(
        "--init-example",
        type=int,
        metavar="FEED_ID",
        default=None,
        help="Write an example rule file for FEED_ID into the rules directory and exit",
    )
    parser.add_argument(
        "--feed-name",
        default="Example Feed",
        help="Feed name recorded in the file written by --init-example",
    )
    args = parser.parse_args(argv)
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be positive")
    return args


def _rules_dir(args: argparse.Namespace) -> str:
    return args.rules_dir or os.environ.get("MINIFLUX_FILTER_RULES_DIR") or "./rules"


def _run_validate(rules_dir: str) -> int:
    logger = get_logger("mff.main")
    try:
        results = check_rule_files(rules_dir)
    except RuleStoreError as exc:
        logger.error("%s", exc)
        return 1

    invalid = [(path, err) for path, err in results if err is not None]
    for path, err in results:
        if err is None:
            logger.info("OK      %s", path)
        else:
            logger.error("INVALID %s: %s", path, err)
    logger.info("Checked %d rule files, %d invalid", len(results), len(invalid))
    return 1 if invalid else 0


def _run_init_example(rules_dir: str, feed_id: int, feed_name: str) -> int:
    logger = get_logger("mff.main")
    path = rule_set_path(rules_dir, feed_id)
    if path.exists():
        logger.error("Rule file %s already exists; not overwriting", path)
        return 1
    create_example_rule_set(path, feed_id, feed_name)
    logger.info("Wrote example rule file to %s", path)
    return 0


def _report_failed_feeds(result: CycleResult, collector: LogCollector, limit: int = 5) -> None:
    """Replay the buffered warnings and errors of each failed feed after a single cycle."""
    logger = get_logger("mff.main")
    for feed in result.failed_feeds:
        problems = [e for e in collector.get_logs_for_feed(feed.feed_id) if e.level in ("WARNING", "ERROR", "CRITICAL")]
        logger.error("Feed %s failed: %s", feed.feed_id, feed.error)
        for entry in reversed(problems[:limit]):
            logger.error("  %s %s %s", entry.timestamp.isoformat(), entry.level, entry.message)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv(override=False)
    args = parse_args(argv)

    collector = LogCollector(LOG_BUFFER_SIZE)
    configure_logging(level=args.log_level, collector=collector)
    logger = get_logger("mff.main")
    logger.info("Starting miniflux-filter v%s", __version__)

    if args.init_example is not None:
        return _run_init_example(_rules_dir(args), args.init_example, args.feed_name)

    if args.validate:
        return _run_validate(_rules_dir(args))

    if args.stats:
        try:
            collect_stats(_rules_dir(args)).log_summary()
        except RuleStoreError as exc:
            logger.error("%s", exc)
            return 1
        return 0

    try:
        config = load_app_config()
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        logger.error("Required environment variables:")
        logger.error("  MINIFLUX_URL - URL of your Miniflux instance")
        logger.error("  MINIFLUX_API_TOKEN - Your Miniflux API token")
        return 1

    if args.log_level is None:
        configure_logging(level=config.log_level, collector=collector)

    rules_dir = Path(args.rules_dir or config.rules_dir)
    interval = args.interval or config.poll_interval
    logger.info("Miniflux URL: %s", config.miniflux_url)
    logger.info("Poll interval: %d seconds", interval)
    logger.info("Using rules directory: %s", rules_dir)
    if args.dry_run:
        logger.info("Dry-run: matching entries will not be marked as read")

    client = MinifluxClient.from_config(config)
    orch = Orchestrator(
        client,
        rules_dir,
        dry_run=args.dry_run,
        max_workers=config.max_workers,
        strict_tags=config.strict_tags,
    )
    scheduler = PollScheduler(orch, client, interval=interval)

    try:
        scheduler.start()
    except StartupError as exc:
        logger.error("%s", exc)
        client.close()
        return 1

    try:
        stats = orch.get_stats()
        stats.log_summary()
        if stats.total_rule_sets == 0:
            logger.info("No rule sets found in %s", rules_dir)
            logger.info("Create YAML rule files in the rules directory (see --init-example) to start filtering")
    except RuleStoreError as exc:
        logger.error("Failed to get initial statistics: %s", exc)

    try:
        if args.once:
            result = scheduler.run_once()
            if result is None:
                return 1
            _report_failed_feeds(result, collector)
            return 0 if not result.failed_feeds else 1

        signal.signal(signal.SIGTERM, lambda signum, frame: scheduler.stop())
        try:
            scheduler.run_forever()
        except KeyboardInterrupt:
            scheduler.stop()
            logger.info("Interrupted; shutting down")
        return 0
    finally:
        client.close()


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
