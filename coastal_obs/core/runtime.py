from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .config import PipelineConfig, load_project_config, load_station_entries
from .hours import HourKey, current_hour
from .stations import StationRegistry


@dataclass
class IngestRuntime:
    """Holds the loaded configuration and derived state shared across components."""

    config_path: Path
    environ: Optional[Mapping[str, str]] = None
    config_data: dict = field(init=False, default_factory=dict)
    config: PipelineConfig = field(init=False)
    registry: StationRegistry = field(init=False)

    def __post_init__(self) -> None:
        self.config_path = Path(self.config_path)
        self.reload_config()

    def reload_config(self) -> None:
        self.config_data = load_project_config(self.config_path)
        self.config = PipelineConfig.from_mapping(
            self.config_data,
            base_dir=self.config_path.resolve().parent,
            environ=self.environ,
        )
        self.registry = StationRegistry.from_entries(load_station_entries(self.config_data))

    def limit_stations(self, limit: Optional[int]) -> None:
        if limit is not None and limit > 0:
            self.registry = StationRegistry(list(self.registry)[:limit])

    def realtime_lookback_hours(self) -> int:
        """Largest publication lag among the sources actually configured."""
        sources = self.registry.sources() or set(self.config.providers)
        return max(self.config.provider(source).lookback_hours for source in sources)

    def realtime_hour(self, now: Optional[dt.datetime] = None) -> HourKey:
        return current_hour(now).shift(-self.realtime_lookback_hours())

