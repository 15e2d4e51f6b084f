"""Merge one hour of adapter output and astronomical data into canonical records."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..clients.base import SourceAdapter
from ..core.astro import AstronomicalCalculator
from ..core.hours import HourKey
from ..core.stations import ASTRO_FIELDS, CANONICAL_FIELDS, Station


logger = logging.getLogger(__name__)

FieldValue = Union[float, str, None]


@dataclass
class ObservationRecord:
    station_id: str
    timestamp: str
    fields: Dict[str, FieldValue] = field(default_factory=lambda: {name: None for name in CANONICAL_FIELDS})

    def to_dict(self, remove_nulls: bool = False) -> Dict[str, object]:
        """Flat JSON shape: station_id, timestamp, then the canonical fields in order."""
        payload: Dict[str, object] = {"station_id": self.station_id, "timestamp": self.timestamp}
        for name in CANONICAL_FIELDS:
            value = self.fields.get(name)
            if value is None and remove_nulls:
                continue
            payload[name] = value
        return payload


class HourlyAggregator:
    """
    Build the canonical record of every station for one hour.

    Astronomical fields are computed once per hour and shared by all stations. An adapter
    failure only degrades that station's record; stations whose id is malformed are
    skipped with a warning and left out of the hour.
    """

    def __init__(
        self,
        adapters: Mapping[object, SourceAdapter],
        astro: Optional[AstronomicalCalculator] = None,
        *,
        max_workers: int = 4,
    ) -> None:
        self.adapters = adapters
        self.astro = astro or AstronomicalCalculator()
        self.max_workers = max(1, max_workers)

    def build_record(self, station: Station, hour: HourKey, astro_fields: Mapping[str, FieldValue]) -> ObservationRecord:
        record = ObservationRecord(station_id=station.id, timestamp=hour.iso)
        adapter = self.adapters.get(station.source)
        if adapter is None:
            logger.error("%s: no adapter registered for source %s", station.id, station.source.value)
        else:
            try:
                partial = adapter.fetch(station, hour)
            except Exception as exc:  # pylint: disable=broad-except
                logger.exception("%s[%s] %s: adapter crashed, fields null: %s", station.source.value, station.id, hour.token, exc)
                partial = {}
            for name, value in partial.items():
                if name not in record.fields or name in ASTRO_FIELDS:
                    logger.error("%s: adapter returned non-canonical field %r; dropped", station.id, name)
                    continue
                if value is not None and not station.expects(name):
                    logger.error("%s: adapter populated unexpected field %r; dropped", station.id, name)
                    continue
                record.fields[name] = value
        record.fields.update(astro_fields)
        return record

    def aggregate(self, stations: Sequence[Station], hour: HourKey) -> List[ObservationRecord]:
        """Return one record per valid station, in registry order."""
        astro_fields = self.astro.compute(hour)
        valid: List[Station] = []
        for station in stations:
            if not station.has_valid_id:
                logger.warning("Skipping station %r: id must be alphanumeric with hyphens", station.id)
                continue
            valid.append(station)
        if not valid:
            return []

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(valid))) as executor:
            return list(executor.map(lambda station: self.build_record(station, hour, astro_fields), valid))
