"""Read-only completeness audit of published hourly files."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import pandas as pd

from ..core.hours import iter_days
from ..core.stations import CANONICAL_FIELDS, Station
from .base import HourlyFileWriter


logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    station_id: str
    day: dt.date
    records_found: int
    fields_populated: int
    missing_expected: List[str] = field(default_factory=list)
    # Per-field null counts; empty when the station has no records at all.
    missing_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.records_found > 0 and not self.missing_expected


@dataclass
class DaySummary:
    day: dt.date
    files_found: int
    records: int
    avg_fields_per_record: float


class CompletenessVerifier:
    """
    Compare each station's expected fields with what its records actually carry.

    Both explicit nulls and absent keys (null-removal output) count as missing. The
    verifier never mutates output and never triggers fetches.
    """

    def __init__(self, writer: HourlyFileWriter):
        self.writer = writer

    def load_day(self, day: dt.date) -> pd.DataFrame:
        frames = []
        for path in self.writer.day_files(day):
            if path.stat().st_size == 0:
                continue
            try:
                frames.append(pd.read_json(path, lines=True, dtype=False, convert_dates=False))
            except ValueError as exc:
                logger.warning("Unreadable output file %s: %s", path, exc)
        if not frames:
            return pd.DataFrame(columns=["station_id"])
        return pd.concat(frames, ignore_index=True)

    @staticmethod
    def _populated(row: pd.Series) -> int:
        return int(sum(1 for name in CANONICAL_FIELDS if name in row.index and pd.notna(row[name])))

    def verify_station(self, station: Station, day: dt.date, frame: pd.DataFrame) -> VerificationReport:
        rows = frame[frame["station_id"].astype(str) == station.id] if not frame.empty else frame
        records_found = int(len(rows))
        expected = [name for name in CANONICAL_FIELDS if station.expects(name)]

        if records_found == 0:
            return VerificationReport(
                station_id=station.id,
                day=day,
                records_found=0,
                fields_populated=0,
                missing_expected=expected,
            )

        missing_counts: Dict[str, int] = {}
        for name in expected:
            if name not in rows.columns:
                missing_counts[name] = records_found
            else:
                missing_counts[name] = int(rows[name].isna().sum())

        return VerificationReport(
            station_id=station.id,
            day=day,
            records_found=records_found,
            fields_populated=self._populated(rows.iloc[0]),
            missing_expected=[name for name in expected if missing_counts[name] > 0],
            missing_counts=missing_counts,
        )

    def verify_day(self, day: dt.date, stations: Iterable[Station]) -> List[VerificationReport]:
        logger.info("Verifying %s", day.isoformat())
        frame = self.load_day(day)
        reports = []
        for station in stations:
            report = self.verify_station(station, day, frame)
            self._log_report(report)
            reports.append(report)
        return reports

    def verify_range(self, start: dt.date, end: dt.date, stations: Sequence[Station]) -> List[VerificationReport]:
        """Verify every day in ``[start, end)``."""
        reports: List[VerificationReport] = []
        if end <= start:
            return reports
        for day in iter_days(start, end - dt.timedelta(days=1)):
            reports.extend(self.verify_day(day, stations))
        return reports

    def summarize_day(self, day: dt.date) -> DaySummary:
        files = self.writer.day_files(day)
        frame = self.load_day(day)
        records = int(len(frame))
        if records:
            total_fields = sum(self._populated(row) for _, row in frame.iterrows())
            average = total_fields / records
        else:
            average = 0.0
        return DaySummary(day=day, files_found=len(files), records=records, avg_fields_per_record=average)

    @staticmethod
    def _log_report(report: VerificationReport) -> None:
        if report.records_found == 0:
            logger.warning("  %s: NO DATA (0 records)", report.station_id)
            return
        logger.info("  %s: %d records, %d fields", report.station_id, report.records_found, report.fields_populated)
        for name in report.missing_expected:
            logger.warning(
                "    %s missing for %s in %d of %d records (expected but got nothing)",
                name,
                report.station_id,
                report.missing_counts[name],
                report.records_found,
            )
