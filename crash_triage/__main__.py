"""
CLI entry point for crash triage.

Parses arguments, validates config, and wires components.
"""

import argparse
import sys
from argparse import Namespace
from datetime import datetime, timezone
from pathlib import Path
from typing import TypedDict

from prettytable import PrettyTable

from .classifiers.signature_classifier import SignatureClassifier
from .dashboard import DashboardConfig, DashboardView, build_dashboard
from .exceptions import ConfigurationError, StoreUnavailableError
from .extractors.dump_extractor import DumpPropertyExtractor
from .fetchers.directory_fetcher import DirectoryDumpFetcher
from .logging_config import get_logger, setup_logging
from .pipeline import IngestConfig, IngestPipeline, IngestReport
from .query_service import QueryService
from .storage.jsonl_store import JSONLTriageStore


class CLIArgs(TypedDict):
    """Typed representation of parsed CLI arguments."""
    command: str
    store_dir: str
    dumps_dir: str | None
    pattern: str
    workers: int
    stack_depth: int
    window_days: int
    lookahead_days: int
    show_properties: bool
    lock_timeout: float
    debug: bool
    log_level: str


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Crash Triage - crash dump bucketing and triage dashboard"
    )
    _ = parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    _ = parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set logging level (default: INFO)"
    )
    _ = parser.add_argument(
        "--store-dir",
        required=True,
        help="Directory holding the triage journal and log files"
    )
    _ = parser.add_argument(
        "--lock-timeout",
        type=float,
        default=5.0,
        help="Seconds to wait on the store before failing (default: 5)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Ingest raw dumps into buckets")
    _ = ingest.add_argument(
        "--dumps-dir",
        required=True,
        help="Path to raw dump directory"
    )
    _ = ingest.add_argument(
        "--pattern",
        default="*.json",
        help="Pattern for finding dump files (default: *.json)"
    )
    _ = ingest.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of ingest worker threads (default: 4)"
    )
    _ = ingest.add_argument(
        "--stack-depth",
        type=int,
        default=10,
        help="Top frames used for the stack hash (default: 10)"
    )

    dashboard = subparsers.add_parser("dashboard", help="Show buckets active in the trailing window")
    _ = dashboard.add_argument(
        "--window-days",
        type=int,
        default=30,
        help="Days before today to include (default: 30)"
    )
    _ = dashboard.add_argument(
        "--lookahead-days",
        type=int,
        default=1,
        help="Days after now to include (default: 1)"
    )
    _ = dashboard.add_argument(
        "--show-properties",
        action="store_true",
        help="Print each dump's properties JSON"
    )

    return parser.parse_args(argv)


def args_to_typed(ns: Namespace) -> CLIArgs:
    """Convert argparse Namespace to typed CLIArgs."""
    return CLIArgs(
        command=ns.command,
        store_dir=ns.store_dir,
        dumps_dir=getattr(ns, "dumps_dir", None),
        pattern=getattr(ns, "pattern", "*.json"),
        workers=getattr(ns, "workers", 4),
        stack_depth=getattr(ns, "stack_depth", 10),
        window_days=getattr(ns, "window_days", 30),
        lookahead_days=getattr(ns, "lookahead_days", 1),
        show_properties=getattr(ns, "show_properties", False),
        lock_timeout=ns.lock_timeout,
        debug=ns.debug,
        log_level=ns.log_level,
    )


def validate_config(args: CLIArgs) -> None:
    """Validate configuration parameters, exiting on error."""
    logger = get_logger("validate_config")

    if args["lock_timeout"] <= 0:
        logger.error(f"lock_timeout must be positive, got {args['lock_timeout']}")
        print(f"Error: lock_timeout must be positive, got {args['lock_timeout']}")
        sys.exit(1)

    if args["command"] == "ingest":
        dumps_dir = Path(args["dumps_dir"] or "")
        if not dumps_dir.is_dir():
            logger.error(f"Dumps directory does not exist: {dumps_dir}")
            print(f"Error: dumps directory does not exist: {dumps_dir}")
            sys.exit(1)
        logger.info(f"Dumps directory: {dumps_dir}")
    else:
        store_dir = Path(args["store_dir"])
        if not store_dir.is_dir():
            logger.error(f"Store directory does not exist: {store_dir}")
            print(f"Error: store directory does not exist: {store_dir}")
            sys.exit(1)

    logger.info(f"Store directory: {args['store_dir']}")


def wire_ingest(args: CLIArgs) -> tuple[DirectoryDumpFetcher, IngestPipeline]:
    """Wire the ingest components around an explicit store handle."""
    logger = get_logger("wire_ingest")

    config = IngestConfig(max_workers=args["workers"], stack_depth=args["stack_depth"])
    logger.info(f"Configuration: {config}")

    fetcher = DirectoryDumpFetcher(Path(args["dumps_dir"] or ""), pattern=args["pattern"])
    store = JSONLTriageStore.in_directory(Path(args["store_dir"]), lock_timeout=args["lock_timeout"])
    pipeline = IngestPipeline(
        extractor=DumpPropertyExtractor(stack_depth=config.stack_depth),
        classifier=SignatureClassifier(store, signature_fields=config.signature_fields),
        store=store,
        config=config,
    )
    return fetcher, pipeline


def print_ingest_report(report: IngestReport) -> None:
    """Print accepted/rejected totals and each rejection."""
    print(f"Ingested {report.total} dumps: {len(report.accepted)} accepted, "
          f"{len(report.rejected)} rejected, {report.buckets_created} new buckets")
    if report.rejected:
        table = PrettyTable()
        table.field_names = ["Source", "Reason"]
        table.align["Source"] = "l"
        table.align["Reason"] = "l"
        for result in report.rejected:
            table.add_row([result.payload_ref or "<inline>", result.error])
        print(table)


def format_timestamp(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def print_dashboard(view: DashboardView, show_properties: bool = False) -> None:
    """Print one row per active bucket, optionally followed by its dumps."""
    print(f"{view.title}: {format_timestamp(view.window_start)} .. {format_timestamp(view.window_end)}")

    table = PrettyTable()
    table.field_names = ["Rank", "Bucket", "Dumps", "First Seen", "Last Seen"]
    table.align["Rank"] = "r"
    table.align["Bucket"] = "l"
    table.align["Dumps"] = "r"
    for i, entry in enumerate(view.buckets, 1):
        table.add_row([
            i,
            entry.bucket.name,
            len(entry.dumps),
            format_timestamp(entry.bucket.created_at),
            format_timestamp(entry.bucket.updated_at),
        ])
    print(table)

    if show_properties:
        for entry in view.buckets:
            print(f"\n{entry.bucket.name}")
            for dump in entry.dumps:
                print(f"  {dump.dump_id} @ {format_timestamp(dump.timestamp)}: {dump.properties_json}")


def run(args: CLIArgs) -> int:
    """Execute the selected command and return an exit code."""
    logger = get_logger("main")

    if args["command"] == "ingest":
        fetcher, pipeline = wire_ingest(args)
        report = pipeline.ingest_many(fetcher.list_dumps())
        print_ingest_report(report)
        return 0

    store = JSONLTriageStore.in_directory(Path(args["store_dir"]), lock_timeout=args["lock_timeout"])
    config = DashboardConfig(window_days=args["window_days"], lookahead_days=args["lookahead_days"])
    view = build_dashboard(QueryService(store), config=config)
    logger.info(f"Showing {len(view.buckets)} buckets")
    print_dashboard(view, show_properties=args["show_properties"])
    return 0


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    args = args_to_typed(parse_args(argv))

    try:
        setup_logging(level=args["log_level"], debug=args["debug"], log_dir=Path(args["store_dir"]))
    except OSError as e:
        print(f"Error: cannot write logs to {args['store_dir']}: {e}")
        sys.exit(2)
    logger = get_logger("main")
    logger.info(f"Starting crash triage: {args['command']}")

    validate_config(args)

    try:
        sys.exit(run(args))
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Error: {e}")
        sys.exit(1)
    except StoreUnavailableError as e:
        logger.error(f"Triage store unavailable: {e}")
        print(f"Error: triage store unavailable, retry later: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        print("\nInterrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
