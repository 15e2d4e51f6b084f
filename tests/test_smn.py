import datetime as dt
import logging

import pytest

from coastal_obs.clients.smn import SmnStationAdapter
from coastal_obs.core.hours import HourKey
from coastal_obs.core.stations import Source
from helpers import FakeResponse, FakeSession, make_settings, make_station


NOW = dt.datetime(2024, 3, 5, 8, 30, tzinfo=dt.timezone.utc)
FIELDS = ("wind_spd_kts", "wind_dir_deg", "visibility_mi", "wave_ht_ft")
READING = {"velocidad_viento": "5", "direccion_viento": "90", "visibilidad": "10", "altura_ola": "1"}


def make_adapter(session, limiter, token="secret"):
    return SmnStationAdapter(make_settings(Source.SMN, token=token), limiter, session=session, now=lambda: NOW)


def payload_session(payload):
    return FakeSession(lambda url, params: FakeResponse(payload=payload))


def test_latest_reading_is_converted(limiter):
    session = payload_session({"datos": [READING]})
    adapter = make_adapter(session, limiter)
    values = adapter.fetch(make_station("ENS", Source.SMN, FIELDS), HourKey(2024, 3, 5, 7))
    assert values == {
        "wind_spd_kts": pytest.approx(9.719),
        "wind_dir_deg": pytest.approx(90.0),
        "visibility_mi": pytest.approx(6.214),
        "wave_ht_ft": pytest.approx(3.281),
    }
    call = session.calls[0]
    assert call["url"] == "https://smn.conagua.gob.mx/api/datos/estacion/ENS"
    assert call["headers"]["Authorization"] == "Bearer secret"


def test_historical_hour_skips_the_network(limiter):
    session = payload_session({"datos": [READING]})
    adapter = make_adapter(session, limiter)
    values = adapter.fetch(make_station("ENS", Source.SMN, FIELDS), HourKey(2024, 3, 1, 7))
    assert values == {name: None for name in FIELDS}
    assert session.calls == []


def test_missing_token_warns_once(limiter, caplog):
    session = payload_session({"datos": [READING]})
    adapter = make_adapter(session, limiter, token=None)
    with caplog.at_level(logging.WARNING):
        first = adapter.fetch(make_station("ENS", Source.SMN, FIELDS), HourKey(2024, 3, 5, 8))
        second = adapter.fetch(make_station("MZT", Source.SMN, FIELDS), HourKey(2024, 3, 5, 8))
    assert first == second == {name: None for name in FIELDS}
    assert session.calls == []
    assert len([r for r in caplog.records if "bearer token" in r.getMessage()]) == 1


def test_empty_readings_are_null(limiter):
    adapter = make_adapter(payload_session({"datos": []}), limiter)
    values = adapter.fetch(make_station("ENS", Source.SMN, ("wind_spd_kts",)), HourKey(2024, 3, 5, 8))
    assert values == {"wind_spd_kts": None}


def test_malformed_payload_is_a_transient_failure(limiter):
    adapter = make_adapter(payload_session({"unexpected": True}), limiter)
    values = adapter.fetch(make_station("ENS", Source.SMN, ("wind_spd_kts",)), HourKey(2024, 3, 5, 8))
    assert values == {"wind_spd_kts": None}


def test_current_window(limiter):
    adapter = make_adapter(payload_session({"datos": []}), limiter)
    assert adapter.is_near_current(HourKey(2024, 3, 5, 8))
    assert adapter.is_near_current(HourKey(2024, 3, 5, 5))
    assert not adapter.is_near_current(HourKey(2024, 3, 5, 4))
    assert not adapter.is_near_current(HourKey(2024, 3, 5, 9))
