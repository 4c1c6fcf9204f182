import threading

from core.crypto_utils import decrypt_envelope
from device.sensors import SimulatedSensors
from service import cycle as cycle_module
from service.cycle import UpdateCycle


class StubForwarder:
    def __init__(self):
        self.readings = []

    def forward(self, reading):
        self.readings.append(reading)


def _cycle(controller, **kwargs):
    sensors = SimulatedSensors(temp_bounds=(20.0, 35.0), hum_bounds=(40.0, 80.0), seed=5)
    return UpdateCycle(controller, sensors, **kwargs)


def test_tick_refreshes_state_and_history(controller, clock, config):
    clock.advance(seconds=5)
    update = _cycle(controller)

    health = update.tick()

    state = controller.state
    assert 20.0 <= state.temperature <= 35.0
    assert 40.0 <= state.humidity <= 80.0
    assert state.last_update == clock()
    assert health.status == "OK" and health.age_ms == 0

    assert len(state.history) == 1
    entry = state.history.dump()[0]
    assert entry.algo == "AES"
    assert decrypt_envelope(entry, config.secret) == {
        "timestamp": "2024-05-01T12:00:05.000Z",
        "temperature": state.temperature,
        "humidity": state.humidity,
    }


def test_tick_notifies_readings_then_health(controller, recorder):
    _cycle(controller).tick()

    assert recorder.names() == ["temperatureUpdated", "dataHealthUpdated"]
    reading = recorder.last("temperatureUpdated")
    assert set(reading) == {"temperature", "humidity", "timestamp"}
    assert recorder.last("dataHealthUpdated")["status"] == "OK"


def test_history_follows_active_algorithm(controller):
    update = _cycle(controller)
    update.tick()
    controller.apply_settings(algo="DES")
    update.tick()

    assert [entry.algo for entry in controller.state.history.dump()] == ["AES", "DES"]
    assert [len(entry.iv) for entry in controller.state.history.dump()] == [16, 8]


def test_history_stays_bounded(controller):
    update = _cycle(controller)
    for _ in range(505):
        update.tick()

    assert len(controller.state.history) == 500


def test_encryption_failure_does_not_abort_tick(controller, recorder, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("cipher backend unavailable")

    monkeypatch.setattr(cycle_module, "encrypt_record", broken)
    forwarder = StubForwarder()

    health = _cycle(controller, forwarder=forwarder).tick()

    assert health.status == "OK"
    assert len(controller.state.history) == 0
    assert recorder.names() == ["temperatureUpdated", "dataHealthUpdated"]
    assert len(forwarder.readings) == 1


def test_tick_forwards_plain_reading(controller, recorder):
    forwarder = StubForwarder()
    _cycle(controller, forwarder=forwarder).tick()

    assert forwarder.readings == [recorder.last("temperatureUpdated")]


def test_schedule_survives_failing_tick(controller, monkeypatch):
    update = _cycle(controller, period_ms=5)
    calls = []
    second_tick = threading.Event()

    def flaky_tick():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("transient")
        second_tick.set()

    monkeypatch.setattr(update, "tick", flaky_tick)

    update.start()
    try:
        assert second_tick.wait(5.0)
    finally:
        update.stop(timeout=5.0)

    assert len(calls) >= 2


def test_start_runs_first_tick_immediately(controller):
    update = _cycle(controller, period_ms=60000)

    update.start()
    update.stop(timeout=5.0)

    assert update.ticks == 1
    assert len(controller.state.history) == 1


def test_period_defaults_to_config(controller, config):
    assert _cycle(controller).period_ms == config.update_period_ms
