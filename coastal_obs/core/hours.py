from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple


@dataclass(frozen=True, order=True)
class HourKey:
    """One UTC hour bucket; the unit of fetch, output and checkpoint."""

    year: int
    month: int
    day: int
    hour: int

    def __post_init__(self) -> None:
        # Raises ValueError for impossible dates/hours.
        dt.datetime(self.year, self.month, self.day, self.hour)

    @classmethod
    def from_datetime(cls, value: dt.datetime) -> "HourKey":
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return cls(value.year, value.month, value.day, value.hour)

    @classmethod
    def parse(cls, token: str) -> "HourKey":
        """Parse a ``YYYYMMDDTHH`` token (an optional trailing ``Z`` is accepted)."""
        cleaned = token.strip().rstrip("Z")
        try:
            parsed = dt.datetime.strptime(cleaned, "%Y%m%dT%H")
        except ValueError as exc:
            raise ValueError(f"Invalid hour token {token!r}; expected YYYYMMDDTHH.") from exc
        return cls.from_datetime(parsed)

    def to_datetime(self) -> dt.datetime:
        return dt.datetime(self.year, self.month, self.day, self.hour, tzinfo=dt.timezone.utc)

    @property
    def date(self) -> dt.date:
        return dt.date(self.year, self.month, self.day)

    @property
    def token(self) -> str:
        return f"{self.year:04d}{self.month:02d}{self.day:02d}T{self.hour:02d}"

    @property
    def iso(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}T{self.hour:02d}:00:00Z"

    @property
    def series_prefix(self) -> str:
        """Prefix of CO-OPS sample timestamps (``YYYY-MM-DD HH``) inside this hour."""
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d} {self.hour:02d}"

    def shift(self, hours: int) -> "HourKey":
        return HourKey.from_datetime(self.to_datetime() + dt.timedelta(hours=hours))

    def __str__(self) -> str:
        return self.token


def current_hour(now: Optional[dt.datetime] = None) -> HourKey:
    now = now or dt.datetime.now(dt.timezone.utc)
    return HourKey.from_datetime(now)


def iter_hours(start: HourKey, end: HourKey) -> Iterable[HourKey]:
    """Yield every hour from start to end (inclusive)."""
    cursor = start.to_datetime()
    stop = end.to_datetime()
    while cursor <= stop:
        yield HourKey.from_datetime(cursor)
        cursor += dt.timedelta(hours=1)


def hours_for_dates(start: dt.date, end: dt.date) -> List[HourKey]:
    """Return the hours of every day in ``[start, end)``; the end date is exclusive."""
    if end <= start:
        return []
    first = HourKey(start.year, start.month, start.day, 0)
    last_day = end - dt.timedelta(days=1)
    last = HourKey(last_day.year, last_day.month, last_day.day, 23)
    return list(iter_hours(first, last))


def iter_days(start: dt.date, end: dt.date) -> Iterable[dt.date]:
    """Yield every date between start and end (inclusive)."""
    cursor = start
    while cursor <= end:
        yield cursor
        cursor += dt.timedelta(days=1)


def day_hours(day: dt.date) -> List[HourKey]:
    return [HourKey(day.year, day.month, day.day, hour) for hour in range(24)]


def month_window(hour: HourKey) -> Tuple[dt.date, dt.date]:
    """Return the first and last calendar day of the hour's month."""
    first = dt.date(hour.year, hour.month, 1)
    if hour.month == 12:
        next_first = dt.date(hour.year + 1, 1, 1)
    else:
        next_first = dt.date(hour.year, hour.month + 1, 1)
    return first, next_first - dt.timedelta(days=1)


def backfill_job_id(start: dt.date, end: dt.date) -> str:
    return f"pull_{start.isoformat()}_to_{end.isoformat()}"

