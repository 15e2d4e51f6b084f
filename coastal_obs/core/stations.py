"""Station registry and the canonical observation field set."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple, Union


logger = logging.getLogger(__name__)


TIDE_HEIGHT_FT = "tide_height_ft"
TIDE_SPEED_KTS = "tide_speed_kts"
TIDE_DIR_DEG = "tide_dir_deg"
VISIBILITY_MI = "visibility_mi"
CLOUD_PCT = "cloud_pct"
WAVE_HT_FT = "wave_ht_ft"
WIND_SPD_KTS = "wind_spd_kts"
WIND_DIR_DEG = "wind_dir_deg"
MOON_PHASE_PCT = "moon_phase_pct"
SUNRISE_TIME = "sunrise_time"
SUNSET_TIME = "sunset_time"

# Output column order.
CANONICAL_FIELDS: Tuple[str, ...] = (
    TIDE_HEIGHT_FT,
    TIDE_SPEED_KTS,
    TIDE_DIR_DEG,
    VISIBILITY_MI,
    CLOUD_PCT,
    WAVE_HT_FT,
    WIND_SPD_KTS,
    WIND_DIR_DEG,
    MOON_PHASE_PCT,
    SUNRISE_TIME,
    SUNSET_TIME,
)

ASTRO_FIELDS: FrozenSet[str] = frozenset({MOON_PHASE_PCT, SUNRISE_TIME, SUNSET_TIME})
OBSERVED_FIELDS: Tuple[str, ...] = tuple(f for f in CANONICAL_FIELDS if f not in ASTRO_FIELDS)

STATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


class StationConfigError(ValueError):
    """Raised when a station definition cannot be parsed."""


class Source(enum.Enum):
    NOAA = "NOAA"
    NDBC = "NDBC"
    SMN = "SMN"

    @classmethod
    def parse(cls, value: str) -> "Source":
        token = (value or "").strip().upper()
        try:
            return cls(token)
        except ValueError as exc:
            raise StationConfigError(f"Unknown source type {value!r}.") from exc


@dataclass(frozen=True)
class Station:
    id: str
    name: str
    lat: float
    lon: float
    source: Source
    expected_fields: FrozenSet[str]

    @property
    def has_valid_id(self) -> bool:
        return bool(STATION_ID_PATTERN.match(self.id))

    def expects(self, field_name: str) -> bool:
        return field_name in self.expected_fields


def _parse_fields(raw: Union[str, Iterable[str], None], station_id: str) -> FrozenSet[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        tokens = [token.strip() for token in raw.split(",")]
    else:
        tokens = [str(token).strip() for token in raw]
    fields = set()
    for token in tokens:
        if not token:
            continue
        if token not in OBSERVED_FIELDS:
            raise StationConfigError(f"Station {station_id!r} expects unknown field {token!r}.")
        fields.add(token)
    return frozenset(fields)


def parse_station_line(line: str) -> Station:
    """Parse one ``id|name|lat|lon|source|fields_csv`` definition."""
    parts = [part.strip() for part in line.split("|")]
    if len(parts) < 5:
        raise StationConfigError(f"Station line needs at least 5 '|' separated columns: {line!r}")
    station_id, name, lat, lon, source = parts[:5]
    fields = parts[5] if len(parts) > 5 else ""
    return parse_station_entry(
        {"id": station_id, "name": name, "lat": lat, "lon": lon, "source": source, "fields": fields}
    )


def parse_station_entry(entry: Union[str, Mapping[str, object]]) -> Station:
    if isinstance(entry, str):
        return parse_station_line(entry)
    if not isinstance(entry, Mapping):
        raise StationConfigError(f"Station entry must be a string or object, got {type(entry).__name__}.")

    station_id = str(entry.get("id") or "").strip()
    if not station_id:
        raise StationConfigError("Station entry is missing 'id'.")
    try:
        lat = float(entry["lat"])  # type: ignore[arg-type]
        lon = float(entry["lon"])  # type: ignore[arg-type]
    except (KeyError, TypeError, ValueError) as exc:
        raise StationConfigError(f"Invalid coordinates for station {station_id!r}.") from exc

    source = Source.parse(str(entry.get("source") or ""))
    raw_fields = entry.get("fields", entry.get("expected_fields"))
    return Station(
        id=station_id,
        name=str(entry.get("name") or station_id),
        lat=lat,
        lon=lon,
        source=source,
        expected_fields=_parse_fields(raw_fields, station_id),  # type: ignore[arg-type]
    )


class StationRegistry:
    """Ordered, immutable collection of configured stations."""

    def __init__(self, stations: Iterable[Station]) -> None:
        self._stations: Tuple[Station, ...] = tuple(stations)
        self._by_id = {station.id: station for station in self._stations}

    @classmethod
    def from_entries(cls, entries: Iterable[Union[str, Mapping[str, object]]]) -> "StationRegistry":
        """
        Build a registry from configuration entries.

        Blank lines and ``#`` comments are ignored. Entries that cannot be parsed
        (unknown source, bad coordinates, unknown field names) are logged and skipped
        so one bad line does not stop the run.
        """
        stations: List[Station] = []
        seen = set()
        for entry in entries:
            if isinstance(entry, str) and (not entry.strip() or entry.lstrip().startswith("#")):
                continue
            try:
                station = parse_station_entry(entry)
            except StationConfigError as exc:
                logger.error("Skipping station definition %r: %s", entry, exc)
                continue
            if station.id in seen:
                logger.warning("Duplicate station id %s in configuration; keeping the first entry", station.id)
                continue
            seen.add(station.id)
            stations.append(station)
        return cls(stations)

    def __iter__(self) -> Iterator[Station]:
        return iter(self._stations)

    def __len__(self) -> int:
        return len(self._stations)

    def get(self, station_id: str) -> Optional[Station]:
        return self._by_id.get(station_id)

    def sources(self) -> FrozenSet[Source]:
        return frozenset(station.source for station in self._stations)

