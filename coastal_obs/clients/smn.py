from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Dict, FrozenSet, Mapping, Optional

from ..core.hours import HourKey, current_hour
from ..core.stations import VISIBILITY_MI, WAVE_HT_FT, WIND_DIR_DEG, WIND_SPD_KTS, Source, Station
from ..core.units import km_to_statute_miles, meters_to_feet, ms_to_knots, non_negative, normalize_direction, round_value
from .base import ConfigurationError, FieldValue, SourceAdapter
from .request_utils import ApiError, build_request_headers


logger = logging.getLogger(__name__)


class SmnStationAdapter(SourceAdapter):
    """
    Servicio Meteorológico Nacional (CONAGUA) station endpoint.

    The upstream only exposes the latest reading, so a reading is attributed to the
    requested hour only when that hour is within ``currentWindowHours`` of now. Older
    hours come back all-null without a network call.
    """

    source = Source.SMN
    owned_fields = frozenset({WIND_SPD_KTS, WIND_DIR_DEG, VISIBILITY_MI, WAVE_HT_FT})
    base_url: str = "https://smn.conagua.gob.mx/api/datos/estacion"

    def __init__(self, *args, now: Optional[Callable[[], dt.datetime]] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.current_window_hours = int(self.settings.option("currentWindowHours", 3))
        self._now = now or (lambda: dt.datetime.now(dt.timezone.utc))

    def is_near_current(self, hour: HourKey) -> bool:
        latest = current_hour(self._now())
        return latest.shift(-self.current_window_hours) <= hour <= latest

    def latest_reading(self, station: Station) -> Optional[Mapping[str, object]]:
        if not self.settings.token:
            raise ConfigurationError("SMN requires a bearer token (providers.smn.token or SMN_TOKEN)")
        resp = self._get(
            f"{self.base_url}/{station.id}",
            headers=build_request_headers(bearer_token=self.settings.token),
        )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise ApiError("SMN returned a non-JSON response.") from exc
        if not isinstance(payload, Mapping) or "datos" not in payload:
            raise ApiError("SMN payload has no 'datos' list.")
        readings = payload["datos"]
        if not isinstance(readings, list):
            raise ApiError("SMN 'datos' is not a list.")
        if not readings:
            return None
        if not isinstance(readings[0], Mapping):
            raise ApiError("SMN reading is not an object.")
        return readings[0]

    @staticmethod
    def extract(reading: Mapping[str, object], fields: FrozenSet[str]) -> Dict[str, FieldValue]:
        values: Dict[str, FieldValue] = {}
        if WIND_SPD_KTS in fields:
            values[WIND_SPD_KTS] = round_value(ms_to_knots(non_negative(reading.get("velocidad_viento"))), 3)
        if WIND_DIR_DEG in fields:
            values[WIND_DIR_DEG] = round_value(normalize_direction(reading.get("direccion_viento")), 1)
        if VISIBILITY_MI in fields:
            values[VISIBILITY_MI] = round_value(km_to_statute_miles(non_negative(reading.get("visibilidad"))), 3)
        if WAVE_HT_FT in fields:
            values[WAVE_HT_FT] = round_value(meters_to_feet(non_negative(reading.get("altura_ola"))), 3)
        return values

    def _fetch(self, station: Station, hour: HourKey, fields: FrozenSet[str]) -> Dict[str, FieldValue]:
        if not self.is_near_current(hour):
            logger.debug("SMN[%s] %s: historical hour, upstream only serves the latest reading", station.id, hour.token)
            return {}
        reading = self.latest_reading(station)
        if reading is None:
            logger.debug("SMN[%s] %s: no readings returned", station.id, hour.token)
            return {}
        return self.extract(reading, fields)
