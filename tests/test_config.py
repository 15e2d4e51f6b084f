import json

import pytest

from coastal_obs.core.config import ConfigError, PipelineConfig, load_project_config, load_station_entries
from coastal_obs.core.runtime import IngestRuntime
from coastal_obs.core.stations import Source


def write_config(path, **overrides):
    config = {
        "dataDir": "out",
        "stations": [
            "9410170|San Diego|32.71|-117.17|NOAA|tide_height_ft",
            "46225|Torrey Pines|32.93|-117.39|NDBC|wave_ht_ft",
        ],
    }
    config.update(overrides)
    path.write_text(json.dumps(config))
    return path


def test_missing_and_invalid_config(tmp_path):
    with pytest.raises(ConfigError):
        load_project_config(tmp_path / "missing.json")
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigError):
        load_project_config(bad)
    array = tmp_path / "array.json"
    array.write_text("[]")
    with pytest.raises(ConfigError):
        load_project_config(array)


def test_station_entries_required():
    with pytest.raises(ConfigError):
        load_station_entries({})
    with pytest.raises(ConfigError):
        load_station_entries({"stations": []})
    assert load_station_entries({"stations": "a|b\n\nc|d"}) == ["a|b", "", "c|d"]


def test_defaults_and_relative_paths(tmp_path):
    config = PipelineConfig.from_mapping({}, base_dir=tmp_path, environ={})
    assert config.data_dir == tmp_path / "data"
    assert config.logs_dir == tmp_path / "logs"
    assert config.checkpoint_dir == tmp_path / "data" / ".checkpoints"
    assert config.product == "stations"
    assert config.remove_nulls is True
    assert config.max_workers == 4
    assert config.provider(Source.NOAA).min_interval_seconds == 1.5
    assert config.provider(Source.NDBC).min_interval_seconds == 2.0
    assert config.provider(Source.SMN).min_interval_seconds == 2.5
    assert config.provider(Source.NOAA).lookback_hours == 3
    assert config.provider(Source.NDBC).option("feedCacheSeconds") == 600
    assert config.min_intervals() == {Source.NOAA: 1.5, Source.NDBC: 2.0, Source.SMN: 2.5}


def test_provider_overrides_and_env_tokens(tmp_path):
    config = PipelineConfig.from_mapping(
        {"providers": {"noaa": {"minIntervalSeconds": 3, "token": "from-config"}, "smn": {"lookbackHours": 2}}},
        base_dir=tmp_path,
        environ={"NOAA_TOKEN": "from-env", "SMN_TOKEN": "smn-env"},
    )
    assert config.provider(Source.NOAA).min_interval_seconds == 3.0
    assert config.provider(Source.NOAA).token == "from-config"
    assert config.provider(Source.SMN).token == "smn-env"
    assert config.provider(Source.SMN).lookback_hours == 2
    assert "token" not in config.provider(Source.NOAA).options


def test_invalid_settings_raise(tmp_path):
    with pytest.raises(ConfigError):
        PipelineConfig.from_mapping({"providers": {"noaa": {"retries": "many"}}}, base_dir=tmp_path, environ={})
    with pytest.raises(ConfigError):
        PipelineConfig.from_mapping({"product": "../escape"}, base_dir=tmp_path, environ={})
    with pytest.raises(ConfigError):
        PipelineConfig.from_mapping({"reference": "San Diego"}, base_dir=tmp_path, environ={})


def test_runtime_realtime_lookback(tmp_path):
    runtime = IngestRuntime(config_path=write_config(tmp_path / "config.json"), environ={})
    assert runtime.config.data_dir == tmp_path / "out"
    assert len(runtime.registry) == 2
    # NOAA (3h) is the slowest configured source.
    assert runtime.realtime_lookback_hours() == 3

    runtime.limit_stations(1)
    assert [s.id for s in runtime.registry] == ["9410170"]


def test_runtime_lookback_ignores_absent_sources(tmp_path):
    path = write_config(tmp_path / "config.json", stations=["46225|Torrey Pines|32.93|-117.39|NDBC|wave_ht_ft"])
    runtime = IngestRuntime(config_path=path, environ={})
    assert runtime.realtime_lookback_hours() == 1
