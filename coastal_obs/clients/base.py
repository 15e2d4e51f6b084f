from __future__ import annotations

import concurrent.futures
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, List, Mapping, Optional, Union

import requests

from ..core.config import ProviderSettings
from ..core.hours import HourKey
from ..core.rate_limiter import RateLimiter
from ..core.stations import Source, Station
from .request_utils import ApiError, get_with_retries


logger = logging.getLogger(__name__)

FieldValue = Union[float, str, None]
PartialRecord = Dict[str, FieldValue]


class ConfigurationError(RuntimeError):
    """Raised when a source cannot be used because its configuration is incomplete."""


class BatchExecutorMixin:
    """
    A mixin for adapters that fetch several independent payloads for one station.

    ``_run_batch`` runs the worker for each request in a small thread pool. The shared
    rate limiter is the only cross-thread synchronization point, so parallelism only
    overlaps network latency and never bypasses the per-source spacing.
    """

    max_parallel_requests: int = 4

    def _run_batch(
        self,
        requests_payload: Iterable[Mapping[str, Any]],
        worker_fn: Callable[..., Any],
        *,
        max_workers: Optional[int] = None,
    ) -> List[Any]:
        """
        Execute ``worker_fn(**request)`` for every request.

        Returns:
            Results in the same order as the requests. A worker that raised leaves its
            exception instance in the corresponding slot.
        """
        request_list = [dict(params) for params in requests_payload]
        if not request_list:
            return []
        workers = min(len(request_list), max_workers or self.max_parallel_requests)
        results: List[Any] = [None] * len(request_list)
        with concurrent.futures.ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
            futures = {executor.submit(worker_fn, **params): index for index, params in enumerate(request_list)}
            for future in concurrent.futures.as_completed(futures):
                index = futures[future]
                try:
                    results[index] = future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    results[index] = exc
        return results


class KeyedLocks:
    """Hand out one lock per cache key so concurrent stations never duplicate a fetch."""

    def __init__(self) -> None:
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def __call__(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class SourceAdapter(ABC):
    """
    Base class for upstream observation sources.

    Subclasses declare the fields they can ever supply in ``owned_fields`` and implement
    ``_fetch``. ``fetch`` restricts the work to the fields the station expects and turns
    upstream failures into an all-null partial record plus one warning.
    """

    source: Source
    owned_fields: FrozenSet[str] = frozenset()
    transient_errors = (ApiError, requests.RequestException, ValueError, KeyError, TypeError)

    def __init__(
        self,
        settings: ProviderSettings,
        rate_limiter: RateLimiter,
        *,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.session = session if session is not None else requests.Session()
        self._config_warning_logged = False

    def requested_fields(self, station: Station, fields: Optional[Iterable[str]] = None) -> FrozenSet[str]:
        wanted = station.expected_fields if fields is None else frozenset(fields)
        return frozenset(wanted) & self.owned_fields

    @staticmethod
    def empty_record(fields: Iterable[str]) -> PartialRecord:
        return {name: None for name in fields}

    def fetch(self, station: Station, hour: HourKey, fields: Optional[Iterable[str]] = None) -> PartialRecord:
        """Return the requested fields for ``station`` during ``hour``; never raises for upstream misses."""
        requested = self.requested_fields(station, fields)
        record = self.empty_record(requested)
        if not requested:
            return record

        prefix = f"{self.source.value}[{station.id}] {hour.token}"
        try:
            values = self._fetch(station, hour, requested)
        except ConfigurationError as exc:
            if not self._config_warning_logged:
                logger.warning("%s: %s; %s fields stay null for this run", prefix, exc, self.source.value)
                self._config_warning_logged = True
            return record
        except self.transient_errors as exc:
            logger.warning("%s: upstream failure, fields null: %s", prefix, exc)
            return record

        for name in requested:
            record[name] = values.get(name)
        return record

    @abstractmethod
    def _fetch(self, station: Station, hour: HourKey, fields: FrozenSet[str]) -> Mapping[str, FieldValue]:
        """Fetch and convert ``fields``; may raise ApiError or ConfigurationError."""

    def _get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, object]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        return get_with_retries(
            self.session,
            url,
            params=params,
            headers=headers,
            timeout=self.settings.timeout_seconds,
            retries=self.settings.retries,
            retry_delay=self.settings.retry_delay_seconds,
            before_attempt=lambda: self.rate_limiter.wait(self.source),
        )
