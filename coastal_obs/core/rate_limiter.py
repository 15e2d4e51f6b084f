from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Hashable, Mapping, Optional


logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Enforce a minimum spacing between calls to the same upstream source.

    Each source has its own lock which is held while waiting, so concurrent callers of
    one source are serialized while callers of different sources never block each other.
    """

    def __init__(
        self,
        min_intervals: Mapping[Hashable, float],
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_intervals: Dict[Hashable, float] = {key: max(0.0, float(value)) for key, value in min_intervals.items()}
        self._clock = clock
        self._sleep = sleep
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._last_call: Dict[Hashable, Optional[float]] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, source: Hashable) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(source)
            if lock is None:
                lock = self._locks[source] = threading.Lock()
                self._last_call[source] = None
            return lock

    def wait(self, source: Hashable) -> float:
        """Block until ``source`` may be called again; returns the seconds slept."""
        interval = self.min_intervals.get(source, 0.0)
        lock = self._lock_for(source)
        with lock:
            slept = 0.0
            last = self._last_call[source]
            if last is not None and interval > 0:
                remaining = interval - (self._clock() - last)
                if remaining > 0:
                    self._sleep(remaining)
                    slept = remaining
            self._last_call[source] = self._clock()
            return slept
