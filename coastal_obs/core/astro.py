"""
Deterministic astronomical fields for an hour bucket.

Moon illumination uses the mean synodic month counted from a reference new moon, with
the day count taken as whole elapsed days plus the fraction of the current UTC day;
sunrise and sunset come from ``astral`` for a single reference location and are
reported as UTC ``HH:MM`` strings. Nothing here performs I/O.
"""

from __future__ import annotations

import datetime as dt
import functools
import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from astral import Observer
from astral.sun import sun

from .hours import HourKey
from .stations import MOON_PHASE_PCT, SUNRISE_TIME, SUNSET_TIME


logger = logging.getLogger(__name__)

SYNODIC_MONTH_DAYS = 29.53059
REFERENCE_NEW_MOON = dt.datetime(2000, 1, 6, 18, 14, tzinfo=dt.timezone.utc)


@dataclass(frozen=True)
class ReferenceLocation:
    name: str = "San Diego"
    lat: float = 32.7157
    lon: float = -117.1611


def moon_illumination_pct(when: dt.datetime) -> float:
    """Illuminated fraction of the moon in percent, rounded to 0.1."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt.timezone.utc)
    midnight = when.replace(hour=0, minute=0, second=0, microsecond=0)
    days = (when - REFERENCE_NEW_MOON).days + (when - midnight).total_seconds() / 86400.0
    phase = (days % SYNODIC_MONTH_DAYS) / SYNODIC_MONTH_DAYS
    return round((1 - math.cos(2 * math.pi * phase)) / 2 * 100, 1)


@functools.lru_cache(maxsize=512)
def sun_times_utc(lat: float, lon: float, day: dt.date) -> Tuple[Optional[str], Optional[str]]:
    """
    Return (sunrise, sunset) for ``day`` as UTC ``HH:MM``.

    Either value is ``None`` when the sun does not rise or set that day.
    """
    observer = Observer(latitude=lat, longitude=lon)
    try:
        times = sun(observer, date=day, tzinfo=dt.timezone.utc)
    except ValueError as exc:
        logger.debug("No sunrise/sunset at (%s, %s) on %s: %s", lat, lon, day, exc)
        return None, None
    return times["sunrise"].strftime("%H:%M"), times["sunset"].strftime("%H:%M")


class AstronomicalCalculator:
    def __init__(self, reference: Optional[ReferenceLocation] = None) -> None:
        self.reference = reference or ReferenceLocation()

    def compute(self, hour: HourKey) -> Dict[str, Union[float, str, None]]:
        sunrise, sunset = sun_times_utc(self.reference.lat, self.reference.lon, hour.date)
        return {
            MOON_PHASE_PCT: moon_illumination_pct(hour.to_datetime()),
            SUNRISE_TIME: sunrise,
            SUNSET_TIME: sunset,
        }
