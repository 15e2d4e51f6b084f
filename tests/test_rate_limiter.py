import threading

from coastal_obs.core.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_call_never_waits():
    clock = FakeClock()
    limiter = RateLimiter({"NOAA": 1.5}, clock=clock, sleep=clock.sleep)
    assert limiter.wait("NOAA") == 0.0
    assert clock.sleeps == []


def test_consecutive_calls_are_spaced():
    clock = FakeClock()
    limiter = RateLimiter({"NOAA": 1.5}, clock=clock, sleep=clock.sleep)
    limiter.wait("NOAA")
    clock.now += 0.5
    assert limiter.wait("NOAA") == 1.0
    clock.now += 2.0
    assert limiter.wait("NOAA") == 0.0
    assert clock.sleeps == [1.0]


def test_sources_are_independent():
    clock = FakeClock()
    limiter = RateLimiter({"NOAA": 1.5, "NDBC": 2.0}, clock=clock, sleep=clock.sleep)
    limiter.wait("NOAA")
    assert limiter.wait("NDBC") == 0.0
    assert clock.sleeps == []


def test_unknown_source_has_no_interval():
    clock = FakeClock()
    limiter = RateLimiter({}, clock=clock, sleep=clock.sleep)
    limiter.wait("SMN")
    assert limiter.wait("SMN") == 0.0


def test_concurrent_callers_are_serialized():
    clock = FakeClock()
    lock = threading.Lock()

    def sleep(seconds):
        with lock:
            clock.sleep(seconds)

    limiter = RateLimiter({"NOAA": 1.0}, clock=clock, sleep=sleep)
    threads = [threading.Thread(target=limiter.wait, args=("NOAA",)) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    # Four of the five callers waited a full interval behind the previous one.
    assert clock.sleeps == [1.0, 1.0, 1.0, 1.0]
