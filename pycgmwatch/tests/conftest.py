"""Pytest configuration and fixtures."""
import pytest

from pycgmwatch.models import Reading, TREND_FLAT

T0 = 1700000000.0  # Fixed epoch for tests


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds=0, minutes=0):
        self.now += seconds + minutes * 60


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [t for t in self.timers if t.started and not t.cancelled]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def make_readings(clock):
    """Build a reading set, most recent first, spaced `spacing` minutes apart ending at the clock"""
    def _make(values, spacing=5, age=0, trend=TREND_FLAT):
        latest = clock.now - age * 60
        return [Reading(value, latest - i * spacing * 60, trend) for i, value in enumerate(values)]
    return _make
