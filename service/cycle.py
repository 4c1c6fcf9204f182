from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional

from core.crypto_utils import encrypt_record
from core.primitives import iso_timestamp
from device.controller import DeviceController
from device.health import HealthVerdict
from device.sensors import SimulatedSensors
from service.forwarder import Forwarder

logger = logging.getLogger(__name__)


class UpdateCycle:
    """Periodic sensor refresh driver.

    Each tick: new readings -> state -> encrypted history entry -> health ->
    notifications -> aggregator forward. History encryption is best-effort:
    its failure is logged and the tick carries on. A failing tick is logged
    and the schedule continues.
    """

    def __init__(
        self,
        controller: DeviceController,
        sensors: SimulatedSensors,
        *,
        forwarder: Optional[Forwarder] = None,
        period_ms: Optional[int] = None,
    ):
        self.controller = controller
        self.sensors = sensors
        self.forwarder = forwarder
        self.period_ms = period_ms or controller.config.update_period_ms

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    def _record_history(self, record: Dict[str, Any]) -> bool:
        state = self.controller.state
        try:
            envelope = encrypt_record(record, state.active_algo, self.controller.config.secret)
            state.history.append(envelope)
        except Exception:
            logger.exception("Encrypt history error (algo=%s)", state.active_algo)
            return False
        return True

    def tick(self) -> HealthVerdict:
        state = self.controller.state
        broadcaster = self.controller.broadcaster

        with state.lock:
            temperature, humidity = self.sensors.read()
            state.temperature = temperature
            state.humidity = humidity
            state.last_update = self.controller.now()
            timestamp = iso_timestamp(state.last_update)

            self._record_history({"timestamp": timestamp, "temperature": temperature, "humidity": humidity})

            reading = {"temperature": temperature, "humidity": humidity, "timestamp": timestamp}
            broadcaster.post("temperatureUpdated", reading)

            health = self.controller.health()
            broadcaster.post("dataHealthUpdated", health.to_dict())

            logger.info(
                "Sensor updated - Temp: %s°C, Hum: %s%%, health=%s, age=%sms, algo=%s",
                temperature,
                humidity,
                health.status,
                health.age_ms,
                state.active_algo,
            )
            self.ticks += 1
        broadcaster.flush()

        if self.forwarder is not None:
            self.forwarder.forward(reading)
        return health

    def _run(self) -> None:
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Update tick failed; schedule continues")
            if self._stop.wait(self.period_ms / 1000.0):
                break

    def start(self) -> threading.Thread:
        """Run the first tick now, then one every period, on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="update-cycle", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
