from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Mapping, Optional, Tuple

import pandas as pd

from ..core.hours import HourKey, month_window
from ..core.stations import (
    TIDE_DIR_DEG,
    TIDE_HEIGHT_FT,
    TIDE_SPEED_KTS,
    VISIBILITY_MI,
    WIND_DIR_DEG,
    WIND_SPD_KTS,
    Source,
    Station,
)
from ..core.units import mean, mean_direction, nautical_to_statute_miles, non_negative, normalize_direction, round_value
from .base import BatchExecutorMixin, FieldValue, KeyedLocks, SourceAdapter
from .request_utils import ApiError, build_request_headers


logger = logging.getLogger(__name__)

# CO-OPS product -> canonical fields it feeds.
PRODUCT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "water_level": (TIDE_HEIGHT_FT,),
    "currents": (TIDE_SPEED_KTS, TIDE_DIR_DEG),
    "wind": (WIND_SPD_KTS, WIND_DIR_DEG),
    "visibility": (VISIBILITY_MI,),
}

PRODUCT_PARAMS: Dict[str, Mapping[str, str]] = {
    "water_level": {"datum": "MLLW"},
    "currents": {},
    "wind": {"interval": "h"},
    "visibility": {"interval": "h"},
}

NO_DATA_MARKER = "no data was found"


class NoaaCoopsAdapter(SourceAdapter, BatchExecutorMixin):
    """
    NOAA Tides & Currents (CO-OPS) data getter.

    Each product is requested for a whole calendar month per station and cached, then
    filtered down to the target hour. English units are requested, so heights arrive in
    feet and speeds in knots; visibility arrives in nautical miles and is converted.

    Docs: https://api.tidesandcurrents.noaa.gov/api/prod/
    """

    source = Source.NOAA
    owned_fields = frozenset(field for fields in PRODUCT_FIELDS.values() for field in fields)
    base_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._series_cache: Dict[Tuple[str, str], Tuple[Tuple[int, int], pd.DataFrame]] = {}
        self._cache_locks = KeyedLocks()

    @staticmethod
    def products_for(fields: FrozenSet[str]) -> Tuple[str, ...]:
        return tuple(product for product, owned in PRODUCT_FIELDS.items() if fields.intersection(owned))

    def _build_params(self, station: Station, product: str, hour: HourKey) -> Dict[str, str]:
        first, last = month_window(hour)
        params: Dict[str, str] = {
            "station": station.id,
            "product": product,
            "begin_date": first.strftime("%Y%m%d"),
            "end_date": last.strftime("%Y%m%d"),
            "time_zone": "gmt",
            "units": "english",
            "format": "json",
        }
        params.update(PRODUCT_PARAMS[product])
        if self.settings.token:
            params["application"] = self.settings.token
        return params

    def _request_series(self, station: Station, product: str, hour: HourKey) -> pd.DataFrame:
        resp = self._get(self.base_url, params=self._build_params(station, product, hour), headers=build_request_headers())
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ApiError(f"CO-OPS {product} returned a non-JSON response.") from exc
        if not isinstance(payload, Mapping):
            raise ApiError(f"CO-OPS {product} returned an unexpected JSON payload.")

        error = payload.get("error")
        if error:
            message = str(error.get("message", error) if isinstance(error, Mapping) else error)
            if NO_DATA_MARKER in message.lower():
                logger.debug("NOAA[%s] %s: no %s data this month", station.id, hour.token, product)
                return pd.DataFrame(columns=["t"])
            raise ApiError(f"CO-OPS {product} error: {message}")

        data = payload.get("data")
        if not isinstance(data, list):
            raise ApiError(f"CO-OPS {product} payload has no 'data' series.")
        df = pd.DataFrame(data)
        if df.empty:
            return pd.DataFrame(columns=["t"])
        if "t" not in df.columns:
            raise ApiError(f"CO-OPS {product} samples have no timestamp column.")
        df["t"] = df["t"].astype(str)
        return df

    def month_series(self, station: Station, product: str, hour: HourKey) -> pd.DataFrame:
        """Return the month-wide series for ``product``, fetching it at most once per month."""
        key = (station.id, product)
        month = (hour.year, hour.month)
        with self._cache_locks(key):
            cached = self._series_cache.get(key)
            if cached is not None and cached[0] == month:
                return cached[1]
            df = self._request_series(station, product, hour)
            # Replaces the previous month's series for this station/product.
            self._series_cache[key] = (month, df)
            return df

    @staticmethod
    def samples_in_hour(df: pd.DataFrame, hour: HourKey) -> pd.DataFrame:
        if df.empty:
            return df
        return df[df["t"].str.startswith(hour.series_prefix)]

    @staticmethod
    def _column(rows: pd.DataFrame, name: str) -> list:
        return rows[name].tolist() if name in rows.columns else []

    def _first(self, rows: pd.DataFrame, name: str) -> Optional[object]:
        values = self._column(rows, name)
        return values[0] if values else None

    def extract(self, product: str, rows: pd.DataFrame) -> Dict[str, FieldValue]:
        """Reduce one product's in-hour samples to canonical values."""
        if product == "water_level":
            return {TIDE_HEIGHT_FT: round_value(mean(self._column(rows, "v")), 3)}
        if product == "currents":
            # Direction is a plain arithmetic mean of degrees, not a circular mean.
            return {
                TIDE_SPEED_KTS: round_value(mean(non_negative(v) for v in self._column(rows, "s")), 3),
                TIDE_DIR_DEG: round_value(mean_direction(self._column(rows, "d")), 1),
            }
        if product == "wind":
            return {
                WIND_SPD_KTS: round_value(non_negative(self._first(rows, "s")), 3),
                WIND_DIR_DEG: round_value(normalize_direction(self._first(rows, "d")), 1),
            }
        if product == "visibility":
            return {VISIBILITY_MI: round_value(nautical_to_statute_miles(non_negative(self._first(rows, "v"))), 3)}
        raise ValueError(f"Unknown CO-OPS product {product!r}")

    def _fetch_product(self, *, station: Station, product: str, hour: HourKey) -> Dict[str, FieldValue]:
        rows = self.samples_in_hour(self.month_series(station, product, hour), hour)
        return self.extract(product, rows)

    def _fetch(self, station: Station, hour: HourKey, fields: FrozenSet[str]) -> Dict[str, FieldValue]:
        products = self.products_for(fields)
        results = self._run_batch(
            ({"station": station, "product": product, "hour": hour} for product in products),
            self._fetch_product,
        )
        values: Dict[str, FieldValue] = {}
        failures = []
        for product, result in zip(products, results):
            if isinstance(result, self.transient_errors):
                failures.append(f"{product}: {result}")
                continue
            if isinstance(result, Exception):
                raise result
            values.update(result)
        if failures and not values:
            raise ApiError("; ".join(failures))
        if failures:
            logger.warning("NOAA[%s] %s: partial upstream failure, affected fields null: %s", station.id, hour.token, "; ".join(failures))
        return values
