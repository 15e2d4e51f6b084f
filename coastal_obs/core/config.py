from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from .astro import ReferenceLocation
from .stations import Source


class ConfigError(RuntimeError):
    """Raised when the project configuration cannot be loaded or parsed."""


# Reference deployment values; every one can be overridden under providers.<key>.
PROVIDER_DEFAULTS: Dict[Source, Dict[str, object]] = {
    Source.NOAA: {"minIntervalSeconds": 1.5, "lookbackHours": 3, "timeoutSeconds": 60, "retries": 3},
    Source.NDBC: {"minIntervalSeconds": 2.0, "lookbackHours": 1, "timeoutSeconds": 60, "retries": 3, "feedCacheSeconds": 600},
    Source.SMN: {"minIntervalSeconds": 2.5, "lookbackHours": 1, "timeoutSeconds": 60, "retries": 3, "currentWindowHours": 3},
}

TOKEN_ENV_VARS: Dict[Source, str] = {
    Source.NOAA: "NOAA_TOKEN",
    Source.SMN: "SMN_TOKEN",
}


def load_project_config(path: Path) -> dict:
    """Return the parsed configuration dictionary from ``config.json``."""
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")
    try:
        config = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:  # pragma: no cover - invalid user config
        raise ConfigError(f"Config file {config_path} contains invalid JSON.") from exc
    if not isinstance(config, Mapping):
        raise ConfigError(f"Config file {config_path} must contain a JSON object.")
    return dict(config)


def load_station_entries(config: Mapping[str, object]) -> List[Union[str, Mapping[str, object]]]:
    """Extract the ordered station definitions (pipe strings or objects)."""
    raw = config.get("stations") if isinstance(config, Mapping) else None
    if isinstance(raw, str):
        return [line for line in raw.splitlines()]
    if not isinstance(raw, list):
        raise ConfigError("The configuration must define a 'stations' list.")
    if not raw:
        raise ConfigError("Define at least one station under 'stations' in config.json.")
    return list(raw)


def provider_setting(config: Mapping[str, object], provider: str, key: str, default=None):
    """Read a provider-specific setting from the loaded config."""
    providers = config.get("providers") if isinstance(config, Mapping) else None
    if not isinstance(providers, Mapping):
        return default
    provider_cfg = providers.get(provider)
    if not isinstance(provider_cfg, Mapping):
        return default
    return provider_cfg.get(key, default)


@dataclass(frozen=True)
class ProviderSettings:
    source: Source
    min_interval_seconds: float
    lookback_hours: int
    timeout_seconds: float
    retries: int
    retry_delay_seconds: float = 1.0
    token: Optional[str] = None
    options: Mapping[str, object] = field(default_factory=dict)

    def option(self, key: str, default=None):
        return self.options.get(key, default)


def _provider_settings(config: Mapping[str, object], source: Source, environ: Mapping[str, str]) -> ProviderSettings:
    key = source.value.lower()
    defaults = PROVIDER_DEFAULTS[source]
    providers = config.get("providers") if isinstance(config, Mapping) else None
    provider_cfg = providers.get(key, {}) if isinstance(providers, Mapping) else {}
    if not isinstance(provider_cfg, Mapping):
        raise ConfigError(f"Provider '{key}' configuration must be an object.")

    def setting(name: str):
        return provider_setting(config, key, name, defaults.get(name))

    env_var = TOKEN_ENV_VARS.get(source)
    token = provider_cfg.get("token") or (environ.get(env_var) if env_var else None) or None
    try:
        return ProviderSettings(
            source=source,
            min_interval_seconds=float(setting("minIntervalSeconds")),
            lookback_hours=int(setting("lookbackHours")),
            timeout_seconds=float(setting("timeoutSeconds")),
            retries=max(1, int(setting("retries"))),
            retry_delay_seconds=float(provider_cfg.get("retryDelaySeconds", 1.0)),
            token=str(token) if token else None,
            options={k: v for k, v in {**defaults, **provider_cfg}.items() if k != "token"},
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Provider '{key}' has an invalid numeric setting: {exc}") from exc


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable run configuration built once at startup and passed explicitly."""

    data_dir: Path
    logs_dir: Path
    archive_dir: Path
    product: str = "stations"
    remove_nulls: bool = True
    max_workers: int = 4
    archive_daily: bool = True
    delete_archived_files: bool = False
    reference: ReferenceLocation = field(default_factory=ReferenceLocation)
    providers: Mapping[Source, ProviderSettings] = field(default_factory=dict)

    @property
    def checkpoint_dir(self) -> Path:
        return self.data_dir / ".checkpoints"

    def provider(self, source: Source) -> ProviderSettings:
        return self.providers[source]

    def min_intervals(self) -> Dict[Source, float]:
        return {source: settings.min_interval_seconds for source, settings in self.providers.items()}

    @classmethod
    def from_mapping(
        cls,
        config: Mapping[str, object],
        *,
        base_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "PipelineConfig":
        base = Path(base_dir) if base_dir is not None else Path.cwd()
        environ = os.environ if environ is None else environ

        def path_setting(key: str, default: str) -> Path:
            value = Path(str(config.get(key) or default))
            return value if value.is_absolute() else base / value

        data_dir = path_setting("dataDir", "data")
        reference_cfg = config.get("reference") or {}
        if not isinstance(reference_cfg, Mapping):
            raise ConfigError("'reference' must be an object with 'lat'/'lon'.")
        try:
            reference = ReferenceLocation(
                name=str(reference_cfg.get("name", ReferenceLocation.name)),
                lat=float(reference_cfg.get("lat", ReferenceLocation.lat)),
                lon=float(reference_cfg.get("lon", ReferenceLocation.lon)),
            )
            max_workers = max(1, int(config.get("maxWorkers", 4)))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric setting in configuration: {exc}") from exc

        product = str(config.get("product") or "stations")
        if not product.replace("-", "").replace("_", "").isalnum():
            raise ConfigError(f"Product name {product!r} must be alphanumeric (with '-' or '_').")

        return cls(
            data_dir=data_dir,
            logs_dir=path_setting("logsDir", "logs"),
            archive_dir=path_setting("archiveDir", str(Path(str(config.get("dataDir") or "data")) / "archive")),
            product=product,
            remove_nulls=bool(config.get("removeNulls", True)),
            max_workers=max_workers,
            archive_daily=bool(config.get("archiveDaily", True)),
            delete_archived_files=bool(config.get("deleteArchivedFiles", False)),
            reference=reference,
            providers={source: _provider_settings(config, source, environ) for source in Source},
        )
