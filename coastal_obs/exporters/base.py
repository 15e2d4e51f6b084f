"""Per-hour JSON Lines output with atomic publication."""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import Iterable, List

from ..core.hours import HourKey, day_hours
from .aggregator import ObservationRecord


logger = logging.getLogger(__name__)


class PublishError(RuntimeError):
    """Raised when an hour's output file cannot be written and published."""


class HourlyFileWriter:
    """
    Write one ``{product}_{YYYYMMDD}T{HH}Z.jsonl`` file per hour under a year folder.

    Records go to a hidden temp file in the same directory, which is fsynced and then
    renamed over the final name. A crash mid-write leaves only the temp file behind; it
    is never read as output and is overwritten by the next attempt.
    """

    def __init__(self, data_dir: Path, product: str = "stations", *, remove_nulls: bool = True):
        self.data_dir = Path(data_dir)
        self.product = product
        self.remove_nulls = remove_nulls

    def year_dir(self, year: int) -> Path:
        return self.data_dir / f"{year:04d}"

    def filename(self, hour: HourKey) -> str:
        return f"{self.product}_{hour.token}Z.jsonl"

    def output_path(self, hour: HourKey) -> Path:
        return self.year_dir(hour.year) / self.filename(hour)

    def temp_path(self, hour: HourKey) -> Path:
        return self.year_dir(hour.year) / f".{self.filename(hour)}.tmp"

    def day_files(self, day: dt.date) -> List[Path]:
        """Existing hourly files for ``day``, in hour order."""
        return [path for path in (self.output_path(hour) for hour in day_hours(day)) if path.exists()]

    def serialize(self, record: ObservationRecord) -> str:
        return json.dumps(record.to_dict(remove_nulls=self.remove_nulls), separators=(",", ":"))

    def publish(self, hour: HourKey, records: Iterable[ObservationRecord]) -> Path:
        """Atomically replace the hour's output file; returns the published path."""
        target = self.output_path(hour)
        temp = self.temp_path(hour)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(temp, "w", encoding="utf-8") as fh:
                for record in records:
                    fh.write(self.serialize(record))
                    fh.write("\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(temp, target)
        except (OSError, TypeError, ValueError) as exc:
            raise PublishError(f"Cannot publish {target}: {exc}") from exc
        logger.info("%s: Wrote %s", hour.token, target)
        return target
