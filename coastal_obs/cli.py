"""
Command-line entry point for the coastal observation ingester.

Commands:
- backfill START END: ingest every hour of [START, END), resuming from the job checkpoint
- realtime: ingest the most recent hour every configured source has published
- verify [DAYS | START END]: completeness report for already written days
- bundle [YYYY-MM]: compress one month of hourly files and remove the originals
- healthcheck: fetch the most recent hour for every station and print what came back
"""

from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .clients.registry import build_adapters
from .core.checkpoint import CheckpointError
from .core.config import ConfigError
from .core.runtime import IngestRuntime
from .exporters.archiver import TarZstdArchiver, remove_files
from .exporters.base import HourlyFileWriter, PublishError
from .exporters.driver import IngestionDriver, RunSummary
from .exporters.verifier import CompletenessVerifier
from .visualization.coverage import print_completeness_chart


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
DEFAULT_CONFIG_PATH = Path("config.json")
DEFAULT_VERIFY_DAYS = 14

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2

logger = logging.getLogger(__name__)


def configure_logging(log_dir: Optional[Path], command: str, *, verbose: bool = False) -> Optional[Path]:
    """Log to the console and, when ``log_dir`` is known, to a per-run file."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    log_file = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        log_file = log_dir / f"{command}_{stamp}.log"
        handlers.insert(0, logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return log_file


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}; expected YYYY-MM-DD") from exc


def _parse_month(value: str) -> dt.date:
    try:
        return dt.datetime.strptime(value, "%Y-%m").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid month {value!r}; expected YYYY-MM") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coastal-obs", description="Hourly coastal station observation ingester")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    backfill = sub.add_parser("backfill", help="Ingest a historical date range (END exclusive)")
    backfill.add_argument("start", type=_parse_date, help="Start date YYYY-MM-DD")
    backfill.add_argument("end", type=_parse_date, help="End date YYYY-MM-DD (exclusive)")
    backfill.add_argument("--keep-nulls", action="store_true", help="Write null-valued fields instead of omitting them")
    backfill.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    backfill.add_argument("--limit-stations", type=int, default=None, help="Limit number of stations")

    realtime = sub.add_parser("realtime", help="Ingest the most recent published hour")
    realtime.add_argument("--keep-nulls", action="store_true", help="Write null-valued fields instead of omitting them")
    realtime.add_argument("--no-progress", action="store_true", help="Disable the progress bar")

    verify = sub.add_parser("verify", help="Report completeness of written days")
    verify.add_argument(
        "range",
        nargs="*",
        help=f"Number of days back from today (default {DEFAULT_VERIFY_DAYS}), or START END dates (END exclusive)",
    )
    verify.add_argument("--chart", action="store_true", help="Print a station x day completeness chart")

    bundle = sub.add_parser("bundle", help="Bundle one month of hourly files")
    bundle.add_argument("month", nargs="?", type=_parse_month, default=None, help="Month YYYY-MM (default: last month)")

    sub.add_parser("healthcheck", help="Fetch the latest hour for every station and print the result")
    return parser


def _verify_window(values: Sequence[str], today: dt.date) -> tuple:
    if not values:
        return today - dt.timedelta(days=DEFAULT_VERIFY_DAYS), today
    if len(values) == 1:
        days = int(values[0])
        if days <= 0:
            raise ValueError("DAYS must be positive")
        return today - dt.timedelta(days=days), today
    if len(values) == 2:
        start, end = _parse_date(values[0]), _parse_date(values[1])
        if end <= start:
            raise ValueError("END_DATE must be after START_DATE")
        return start, end
    raise ValueError("verify takes DAYS or START END")


def _log_run_summary(summary: RunSummary) -> None:
    logger.info(
        "Summary for %s: %d/%d hours processed, %d skipped, %d records, %d days verified, %d bundles",
        summary.job_id,
        summary.hours_processed,
        summary.hours_total,
        summary.hours_skipped,
        summary.records_written,
        summary.days_completed,
        summary.bundles_created,
    )
    incomplete = summary.incomplete_reports
    if incomplete:
        logger.warning("%d station-days are missing expected fields", len(incomplete))


def _apply_output_flags(runtime: IngestRuntime, args: argparse.Namespace) -> None:
    if getattr(args, "keep_nulls", False):
        runtime.config = dataclasses.replace(runtime.config, remove_nulls=False)
    runtime.limit_stations(getattr(args, "limit_stations", None))


def cmd_backfill(runtime: IngestRuntime, args: argparse.Namespace) -> int:
    if args.end <= args.start:
        logger.error("END_DATE must be after START_DATE")
        return EXIT_CONFIG
    _apply_output_flags(runtime, args)
    driver = IngestionDriver.from_config(runtime.config, runtime.registry, show_progress=not args.no_progress)
    _log_run_summary(driver.run_backfill(args.start, args.end))
    return EXIT_OK


def cmd_realtime(runtime: IngestRuntime, args: argparse.Namespace) -> int:
    _apply_output_flags(runtime, args)
    driver = IngestionDriver.from_config(runtime.config, runtime.registry, show_progress=not args.no_progress)
    _log_run_summary(driver.run_realtime(runtime.realtime_lookback_hours()))
    return EXIT_OK


def cmd_verify(runtime: IngestRuntime, args: argparse.Namespace) -> int:
    try:
        start, end = _verify_window(args.range, dt.datetime.now(dt.timezone.utc).date())
    except (ValueError, argparse.ArgumentTypeError) as exc:
        logger.error("Invalid verify range: %s", exc)
        return EXIT_CONFIG

    config = runtime.config
    verifier = CompletenessVerifier(HourlyFileWriter(config.data_dir, config.product, remove_nulls=config.remove_nulls))
    logger.info("Verifying %s to %s (END exclusive) for %d stations", start, end, len(runtime.registry))
    stations = [station for station in runtime.registry if station.has_valid_id]
    reports = verifier.verify_range(start, end, stations)
    if args.chart:
        print_completeness_chart(reports, color=sys.stdout.isatty())

    problems = [report for report in reports if not report.ok]
    if problems:
        logger.warning("%d of %d station-days incomplete", len(problems), len(reports))
        return EXIT_FATAL
    logger.info("All %d station-days complete", len(reports))
    return EXIT_OK


def cmd_bundle(runtime: IngestRuntime, args: argparse.Namespace) -> int:
    month = args.month
    if month is None:
        first_of_this_month = dt.datetime.now(dt.timezone.utc).date().replace(day=1)
        month = (first_of_this_month - dt.timedelta(days=1)).replace(day=1)

    config = runtime.config
    year_dir = HourlyFileWriter(config.data_dir, config.product).year_dir(month.year)
    pattern = f"{config.product}_{month.year:04d}{month.month:02d}*.jsonl"
    files = sorted(year_dir.glob(pattern))
    label = f"{month.year:04d}-{month.month:02d}"
    logger.info("Bundling %s: %d files from %s", label, len(files), year_dir)

    result = TarZstdArchiver(year_dir).bundle(label, files)
    if not result.success:
        if not files:
            return EXIT_OK
        return EXIT_FATAL
    removed = remove_files(files)
    logger.info("Removed %d original files", removed)
    return EXIT_OK


def cmd_healthcheck(runtime: IngestRuntime, args: argparse.Namespace) -> int:
    hour = runtime.realtime_hour()
    adapters = build_adapters(runtime.config)
    print(f"--- Healthcheck for hour {hour.iso} ---")
    for station in runtime.registry:
        adapter = adapters.get(station.source)
        if adapter is None:
            print(f"{station.id}: no adapter for {station.source.value}")
            continue
        values = adapter.fetch(station, hour)
        populated = {name: value for name, value in values.items() if value is not None}
        status = "OK" if populated else "EMPTY"
        print(f"{station.id} ({station.source.value}): {status} {len(populated)}/{len(values)} fields {populated}")
    return EXIT_OK


COMMANDS = {
    "backfill": cmd_backfill,
    "realtime": cmd_realtime,
    "verify": cmd_verify,
    "bundle": cmd_bundle,
    "healthcheck": cmd_healthcheck,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        runtime = IngestRuntime(config_path=args.config)
    except ConfigError as exc:
        configure_logging(None, args.command, verbose=args.verbose)
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    log_file = configure_logging(runtime.config.logs_dir, args.command, verbose=args.verbose)
    logger.info("coastal-obs %s started (log file: %s)", args.command, log_file)

    try:
        return COMMANDS[args.command](runtime, args)
    except (CheckpointError, PublishError) as exc:
        logger.error("Fatal: %s", exc)
        return EXIT_FATAL
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.warning("Interrupted; completed hours are checkpointed and will be skipped on restart")
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
