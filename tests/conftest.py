from datetime import datetime, timedelta, timezone

import pytest

from core.config import DeviceConfig
from device.controller import DeviceController
from device.state import DeviceState
from service.broadcast import Broadcaster


class FixedClock:
    """Manually advanced clock for deterministic freshness checks."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current += timedelta(**delta)
        return self.current


class Recorder:
    """Observer that keeps every (event, payload) it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event, payload):
        self.events.append((event, payload))

    def names(self):
        return [name for name, _ in self.events]

    def last(self, name):
        for event, payload in reversed(self.events):
            if event == name:
                return payload
        raise AssertionError(f"no {name} event recorded")


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config():
    return DeviceConfig(update_period_ms=5000, seed=7)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def controller(config, clock, recorder):
    broadcaster = Broadcaster()
    broadcaster.subscribe(recorder)
    state = DeviceState(active_algo=config.default_algo, last_update=clock())
    return DeviceController(state, config, broadcaster, clock=clock)
