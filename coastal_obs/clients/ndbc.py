from __future__ import annotations

import logging
import time
from io import StringIO
from typing import Callable, Dict, FrozenSet, List, Tuple

import pandas as pd

from ..core.hours import HourKey
from ..core.stations import VISIBILITY_MI, WAVE_HT_FT, WIND_DIR_DEG, WIND_SPD_KTS, Source, Station
from ..core.units import (
    M_TO_FT,
    MS_TO_KTS,
    NMI_TO_MI,
    mean,
    mean_direction,
    non_negative,
    round_value,
)
from .base import FieldValue, KeyedLocks, SourceAdapter
from .request_utils import ApiError, build_request_headers


logger = logging.getLogger(__name__)

# Standard meteorological realtime2 layout, used when the feed has no header line.
DEFAULT_COLUMNS: List[str] = [
    "YY", "MM", "DD", "hh", "mm", "WDIR", "WSPD", "GST", "WVHT", "DPD",
    "APD", "MWD", "PRES", "ATMP", "WTMP", "DEWP", "VIS", "PTDY", "TIDE",
]
MISSING_TOKEN = "MM"


class NdbcUnavailable(ApiError):
    """The station feed does not exist or is empty."""


class NdbcBuoyAdapter(SourceAdapter):
    """
    National Data Buoy Center rolling 45-day text feed.

    Docs: https://www.ndbc.noaa.gov/faq/measdes.shtml
    """

    source = Source.NDBC
    owned_fields = frozenset({WAVE_HT_FT, WIND_DIR_DEG, WIND_SPD_KTS, VISIBILITY_MI})
    base_url: str = "https://www.ndbc.noaa.gov/data/realtime2"

    def __init__(self, *args, clock: Callable[[], float] = time.monotonic, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.cache_seconds = float(self.settings.option("feedCacheSeconds", 600))
        self._clock = clock
        self._feed_cache: Dict[str, Tuple[float, pd.DataFrame]] = {}
        self._cache_locks = KeyedLocks()

    @staticmethod
    def parse_feed(text: str) -> pd.DataFrame:
        """Parse the whitespace-separated feed; ``MM`` cells become NaN."""
        lines = text.splitlines()
        header = next((line for line in lines if line.startswith("#")), None)
        names = header.lstrip("#").split() if header else DEFAULT_COLUMNS
        df = pd.read_csv(
            StringIO(text),
            sep=r"\s+",
            comment="#",
            header=None,
            names=names,
            na_values=[MISSING_TOKEN],
            keep_default_na=False,
            dtype=str,
            engine="python",
        )
        for column in ("YY", "MM", "DD", "hh"):
            if column not in df.columns:
                raise ApiError(f"NDBC feed is missing the {column} column.")
            df[column] = pd.to_numeric(df[column], errors="coerce")
        df = df.dropna(subset=["YY", "MM", "DD", "hh"]).copy()
        df["YY"] = df["YY"].where(df["YY"] >= 100, df["YY"] + 2000)
        return df

    def _request_feed(self, station: Station) -> pd.DataFrame:
        url = f"{self.base_url}/{station.id}.txt"
        try:
            resp = self._get(url, headers=build_request_headers({"Accept": "text/plain"}))
        except ApiError as exc:
            if exc.status == 404:
                raise NdbcUnavailable(f"no realtime feed for station {station.id} (HTTP 404)", status=404) from exc
            raise
        text = (resp.text or "").strip()
        if not text or "not found" in text[:500].lower():
            raise NdbcUnavailable(f"empty or missing realtime feed for station {station.id}")
        return self.parse_feed(text)

    def feed(self, station: Station) -> pd.DataFrame:
        with self._cache_locks(station.id):
            cached = self._feed_cache.get(station.id)
            now = self._clock()
            if cached is not None and now - cached[0] < self.cache_seconds:
                return cached[1]
            df = self._request_feed(station)
            self._feed_cache[station.id] = (now, df)
            return df

    @staticmethod
    def rows_for_hour(df: pd.DataFrame, hour: HourKey) -> pd.DataFrame:
        mask = (df["YY"] == hour.year) & (df["MM"] == hour.month) & (df["DD"] == hour.day) & (df["hh"] == hour.hour)
        return df[mask]

    @staticmethod
    def _values(rows: pd.DataFrame, column: str) -> list:
        if column not in rows.columns:
            return []
        return rows[column].tolist()

    def extract(self, rows: pd.DataFrame, fields: FrozenSet[str]) -> Dict[str, FieldValue]:
        """Average every sub-hour reading per field, then convert to canonical units."""
        values: Dict[str, FieldValue] = {}
        if WAVE_HT_FT in fields:
            wave = mean(non_negative(v) for v in self._values(rows, "WVHT"))
            values[WAVE_HT_FT] = round_value(wave * M_TO_FT if wave is not None else None, 3)
        if WIND_DIR_DEG in fields:
            values[WIND_DIR_DEG] = round_value(mean_direction(self._values(rows, "WDIR")), 1)
        if WIND_SPD_KTS in fields:
            speed = mean(non_negative(v) for v in self._values(rows, "WSPD"))
            values[WIND_SPD_KTS] = round_value(speed * MS_TO_KTS if speed is not None else None, 3)
        if VISIBILITY_MI in fields:
            vis = mean(non_negative(v) for v in self._values(rows, "VIS"))
            values[VISIBILITY_MI] = round_value(vis * NMI_TO_MI if vis is not None else None, 3)
        return values

    def _fetch(self, station: Station, hour: HourKey, fields: FrozenSet[str]) -> Dict[str, FieldValue]:
        rows = self.rows_for_hour(self.feed(station), hour)
        if rows.empty:
            logger.debug("NDBC[%s] %s: no readings in feed for this hour", station.id, hour.token)
            return {}
        return self.extract(rows, fields)
