"""Hour-by-hour ingestion loop shared by backfill and real-time runs."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import requests
from tqdm.auto import tqdm

from ..clients.registry import build_adapters
from ..core.astro import AstronomicalCalculator
from ..core.checkpoint import CheckpointStore
from ..core.config import PipelineConfig
from ..core.hours import HourKey, backfill_job_id, current_hour, day_hours, hours_for_dates
from ..core.rate_limiter import RateLimiter
from ..core.stations import StationRegistry
from .aggregator import HourlyAggregator
from .archiver import Archiver, TarZstdArchiver, remove_files
from .base import HourlyFileWriter
from .verifier import CompletenessVerifier, VerificationReport


logger = logging.getLogger(__name__)

REALTIME_JOB_ID = "realtime"
# Real-time checkpoint entries are kept for the ingested hour's day and this many days before it.
REALTIME_RETAIN_DAYS = 1


@dataclass
class RunSummary:
    job_id: str
    hours_total: int = 0
    hours_processed: int = 0
    hours_skipped: int = 0
    records_written: int = 0
    days_completed: int = 0
    bundles_created: int = 0
    reports: List[VerificationReport] = field(default_factory=list)

    @property
    def incomplete_reports(self) -> List[VerificationReport]:
        return [report for report in self.reports if not report.ok]


class IngestionDriver:
    """
    Process an ordered hour range for every registered station.

    For each hour not yet in the job's checkpoint: aggregate, publish the hour file, then
    mark the hour done. The checkpoint is appended only after the file is in place, so a
    crash at any point leaves the hour either fully done or re-processed on restart.
    ``PublishError`` and ``CheckpointError`` propagate and stop the run.
    """

    def __init__(
        self,
        config: PipelineConfig,
        registry: StationRegistry,
        aggregator: HourlyAggregator,
        *,
        writer: Optional[HourlyFileWriter] = None,
        verifier: Optional[CompletenessVerifier] = None,
        archiver: Optional[Archiver] = None,
        show_progress: bool = True,
    ) -> None:
        self.config = config
        self.registry = registry
        self.aggregator = aggregator
        self.writer = writer or HourlyFileWriter(config.data_dir, config.product, remove_nulls=config.remove_nulls)
        self.verifier = verifier or CompletenessVerifier(self.writer)
        if archiver is None and config.archive_daily:
            archiver = TarZstdArchiver(config.archive_dir)
        self.archiver = archiver
        self.show_progress = show_progress

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        registry: StationRegistry,
        *,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        show_progress: bool = True,
    ) -> "IngestionDriver":
        adapters = build_adapters(config, rate_limiter, session=session)
        aggregator = HourlyAggregator(
            adapters,
            AstronomicalCalculator(config.reference),
            max_workers=config.max_workers,
        )
        return cls(config, registry, aggregator, show_progress=show_progress)

    def checkpoint_for(self, job_id: str) -> CheckpointStore:
        return CheckpointStore(self.config.checkpoint_dir, job_id)

    def run(self, job_id: str, hours: Sequence[HourKey], *, discard_on_complete: bool = True) -> RunSummary:
        hours = sorted(set(hours))
        checkpoint = self.checkpoint_for(job_id)
        pending = checkpoint.pending(hours)
        summary = RunSummary(job_id=job_id, hours_total=len(hours), hours_skipped=len(hours) - len(pending))
        stations = list(self.registry)

        if summary.hours_skipped:
            logger.info("%s: %d of %d hours already checkpointed", job_id, summary.hours_skipped, len(hours))
        if not stations:
            logger.warning("%s: no stations registered; hour files will be empty", job_id)

        progress = tqdm(pending, desc=job_id, unit="hour", disable=not self.show_progress)
        for hour in progress:
            records = self.aggregator.aggregate(stations, hour)
            self.writer.publish(hour, records)
            checkpoint.mark_done(hour)
            summary.hours_processed += 1
            summary.records_written += len(records)
            progress.set_postfix_str(hour.token)

            if hour.hour == 23 or hour == pending[-1]:
                if all(checkpoint.is_done(candidate) for candidate in day_hours(hour.date)):
                    self.complete_day(hour.date, summary)

        if discard_on_complete and all(checkpoint.is_done(hour) for hour in hours):
            checkpoint.discard()

        logger.info(
            "%s finished: %d hours processed, %d skipped, %d records written, %d bundles created",
            job_id,
            summary.hours_processed,
            summary.hours_skipped,
            summary.records_written,
            summary.bundles_created,
        )
        return summary

    def complete_day(self, day: dt.date, summary: RunSummary) -> None:
        """Summarize, verify and optionally bundle a day whose 24 hours are all done."""
        day_summary = self.verifier.summarize_day(day)
        logger.info(
            "Day %s complete: %d files, %d records, %.1f fields/record",
            day.isoformat(),
            day_summary.files_found,
            day_summary.records,
            day_summary.avg_fields_per_record,
        )
        summary.days_completed += 1
        stations = [station for station in self.registry if station.has_valid_id]
        summary.reports.extend(self.verifier.verify_day(day, stations))

        if not (self.config.archive_daily and self.archiver is not None):
            return
        files = self.writer.day_files(day)
        result = self.archiver.bundle(day.isoformat(), files)
        if not result.success:
            logger.error("Daily bundle for %s failed: %s", day.isoformat(), result.error)
            return
        summary.bundles_created += 1
        if self.config.delete_archived_files:
            removed = remove_files(files)
            logger.info("Removed %d archived hour files for %s", removed, day.isoformat())

    def run_backfill(self, start: dt.date, end: dt.date) -> RunSummary:
        """Ingest every hour of ``[start, end)``; the checkpoint is dropped once all are done."""
        if end <= start:
            raise ValueError("END_DATE must be after START_DATE")
        job_id = backfill_job_id(start, end)
        hours = hours_for_dates(start, end)
        logger.info("Backfill %s: %d stations, %d hours", job_id, len(self.registry), len(hours))
        return self.run(job_id, hours)

    def run_realtime(self, lookback_hours: int, now: Optional[dt.datetime] = None) -> RunSummary:
        """Ingest the single hour ``now - lookback_hours`` under the persistent real-time job."""
        hour = current_hour(now).shift(-lookback_hours)
        logger.info("Real-time ingest for %s (lookback %dh)", hour.token, lookback_hours)
        summary = self.run(REALTIME_JOB_ID, [hour], discard_on_complete=False)
        keep_from = day_hours(hour.date - dt.timedelta(days=REALTIME_RETAIN_DAYS))[0]
        pruned = self.checkpoint_for(REALTIME_JOB_ID).prune(keep_from)
        if pruned:
            logger.info("Pruned %d real-time checkpoint entries before %s", pruned, keep_from.token)
        return summary

