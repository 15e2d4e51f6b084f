import datetime as dt
import json
import logging

import pytest

from coastal_obs.cli import EXIT_CONFIG, EXIT_FATAL, EXIT_OK, main
from coastal_obs.core.hours import day_hours
from coastal_obs.exporters.aggregator import ObservationRecord
from coastal_obs.exporters.base import HourlyFileWriter


DAY = dt.date(2024, 2, 10)


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def write_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "dataDir": "data",
                "logsDir": "logs",
                "stations": ["46225|Torrey Pines|32.93|-117.39|NDBC|wave_ht_ft"],
            }
        )
    )
    return path


def write_day(tmp_path, wave=3.1):
    writer = HourlyFileWriter(tmp_path / "data")
    for hour in day_hours(DAY):
        rec = ObservationRecord(station_id="46225", timestamp=hour.iso)
        rec.fields["wave_ht_ft"] = wave
        writer.publish(hour, [rec])
    return writer


def test_missing_config_exit_code(tmp_path):
    assert main(["--config", str(tmp_path / "missing.json"), "verify"]) == EXIT_CONFIG


def test_invalid_json_exit_code(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{")
    assert main(["--config", str(path), "healthcheck"]) == EXIT_CONFIG


def test_verify_complete_day(tmp_path, capsys):
    config = write_config(tmp_path)
    write_day(tmp_path)
    code = main(["--config", str(config), "verify", "2024-02-10", "2024-02-11", "--chart"])
    assert code == EXIT_OK
    assert "46225" in capsys.readouterr().out
    assert list((tmp_path / "logs").glob("verify_*.log"))


def test_verify_reports_missing_fields(tmp_path):
    config = write_config(tmp_path)
    write_day(tmp_path, wave=None)
    assert main(["--config", str(config), "verify", "2024-02-10", "2024-02-11"]) == EXIT_FATAL


def test_verify_rejects_bad_range(tmp_path):
    config = write_config(tmp_path)
    assert main(["--config", str(config), "verify", "2024-02-11", "2024-02-10"]) == EXIT_CONFIG
    assert main(["--config", str(config), "verify", "zero"]) == EXIT_CONFIG


def test_backfill_rejects_reversed_range(tmp_path):
    config = write_config(tmp_path)
    assert main(["--config", str(config), "backfill", "2024-02-11", "2024-02-10"]) == EXIT_CONFIG


def test_bundle_month(tmp_path):
    config = write_config(tmp_path)
    writer = write_day(tmp_path)
    files = writer.day_files(DAY)
    assert len(files) == 24

    assert main(["--config", str(config), "bundle", "2024-02"]) == EXIT_OK
    assert (tmp_path / "data" / "2024" / "2024-02.tar.zst").exists()
    assert not any(path.exists() for path in files)


def test_bundle_empty_month_is_not_an_error(tmp_path):
    config = write_config(tmp_path)
    assert main(["--config", str(config), "bundle", "2023-07"]) == EXIT_OK
