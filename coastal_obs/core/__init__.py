"""Core building blocks for station observation ingestion."""

from .config import ConfigError, PipelineConfig, ProviderSettings, load_project_config, load_station_entries
from .hours import HourKey, iter_days, iter_hours, hours_for_dates
from .runtime import IngestRuntime
from .stations import CANONICAL_FIELDS, Source, Station, StationRegistry

__all__ = [
    "ConfigError",
    "PipelineConfig",
    "ProviderSettings",
    "load_project_config",
    "load_station_entries",
    "HourKey",
    "iter_days",
    "iter_hours",
    "hours_for_dates",
    "IngestRuntime",
    "CANONICAL_FIELDS",
    "Source",
    "Station",
    "StationRegistry",
]
