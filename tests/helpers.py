"""Fakes shared by the test modules."""

import json

from coastal_obs.core.config import ProviderSettings
from coastal_obs.core.stations import Source, Station


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = json.dumps(payload) if payload is not None else ""
        self.text = text

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    """Stands in for ``requests.Session``; ``handler(url, params)`` returns a response or an exception."""

    def __init__(self, handler):
        self.handler = handler
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        result = self.handler(url, dict(params or {}))
        if isinstance(result, Exception):
            raise result
        return result


def make_settings(source, **overrides):
    values = dict(
        source=source,
        min_interval_seconds=0.0,
        lookback_hours=1,
        timeout_seconds=5,
        retries=1,
        retry_delay_seconds=0.0,
        token=None,
        options={},
    )
    values.update(overrides)
    return ProviderSettings(**values)


def make_station(station_id="9410170", source=Source.NOAA, fields=("tide_height_ft",)):
    return Station(
        id=station_id,
        name=f"Station {station_id}",
        lat=32.71,
        lon=-117.17,
        source=source,
        expected_fields=frozenset(fields),
    )


class StubAdapter:
    """Adapter double returning canned values and recording every call."""

    def __init__(self, values=None, error=None):
        self.values = values or {}
        self.error = error
        self.calls = []

    def fetch(self, station, hour, fields=None):
        self.calls.append((station.id, hour))
        if self.error is not None:
            raise self.error
        return dict(self.values.get(station.id, {}))
