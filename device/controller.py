from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from core.config import DeviceConfig
from core.crypto_utils import encrypt_record
from core.primitives import Envelope, iso_timestamp, utc_now
from core.suites import UnsupportedAlgorithm, resolve
from device.health import HealthVerdict, evaluate
from device.state import DeviceState
from service.broadcast import Broadcaster, Observer

logger = logging.getLogger(__name__)


class InvalidAlgorithm(ValueError):
    """Settings update named an algorithm that is not registered."""


class FanControlDisabled(ValueError):
    """Fan command rejected because fan control is switched off."""


class InvalidState(ValueError):
    """Actuator command value is neither an ON nor an OFF representation."""


UNSET: Any = object()

_ON_VALUES = ("ON", 1, True)
_OFF_VALUES = ("OFF", 0, False)

# Export name -> fields included in the encrypted record.
EXPORT_FIELDS = {
    "sensor": ("temperature", "humidity"),
    "humidity": ("humidity",),
}


def parse_switch(value: Any) -> Optional[bool]:
    """Map an ON/OFF representation to a bool; None when unrecognized."""
    if value in _ON_VALUES:
        return True
    if value in _OFF_VALUES:
        return False
    return None


def coerce_flag(value: Any) -> bool:
    """True only for true, "true", 1 and "1"."""
    if value is True:
        return True
    if isinstance(value, str):
        return value in ("true", "1")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 1
    return False


class DeviceController:
    """Serialized access to the device state: actuators, settings, reads, exports.

    All state access runs under ``state.lock``. Notifications are queued while
    the lock is held, which fixes their order, and delivered after it is
    released so a slow observer never holds up reads or commands.
    """

    def __init__(
        self,
        state: DeviceState,
        config: DeviceConfig,
        broadcaster: Broadcaster,
        *,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.state = state
        self.config = config
        self.broadcaster = broadcaster
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # -- reads ---------------------------------------------------------

    def health(self) -> HealthVerdict:
        with self.state.lock:
            return evaluate(self.state.last_update, self.config.max_age_ms, now=self.now())

    def sensor_reading(self) -> Dict[str, Any]:
        with self.state.lock:
            return {
                "temperature": self.state.temperature,
                "humidity": self.state.humidity,
                "timestamp": iso_timestamp(self.state.last_update),
            }

    def status(self) -> Dict[str, Any]:
        """Full snapshot: state, active algorithm and health verdict."""
        with self.state.lock:
            snapshot = self.state.to_wire()
            snapshot["encAlgo"] = self.state.active_algo
            snapshot["dataHealth"] = self.health().to_dict()
            return snapshot

    def export_encrypted(self, kind: str = "sensor", algo: Optional[str] = None) -> Envelope:
        """Encrypt the current readings on demand.

        ``algo=None`` uses the active algorithm; an explicit unknown name raises
        UnsupportedAlgorithm.
        """
        fields = EXPORT_FIELDS[kind]
        with self.state.lock:
            record: Dict[str, Any] = {"timestamp": iso_timestamp(self.state.last_update)}
            for name in fields:
                record[name] = getattr(self.state, name)
            return encrypt_record(record, algo, self.config.secret, active=self.state.active_algo)

    def connect(self, observer: Observer) -> Callable[[], None]:
        """Subscribe an observer and send it the initial state snapshot.

        The snapshot is queued before the subscription takes effect, so the
        observer sees it ahead of any later broadcast.
        """
        with self.state.lock:
            self.broadcaster.post("initialState", self.status(), targets=[observer])
            unsubscribe = self.broadcaster.subscribe(observer)
        self.broadcaster.flush()
        return unsubscribe

    # -- actuators -----------------------------------------------------

    def set_led(self, requested: Any) -> bool:
        """Switch the LED. Unrecognized values leave it as is without error."""
        wanted = parse_switch(requested)
        with self.state.lock:
            if wanted is None:
                logger.warning("LED command %r not recognized; state left %s", requested, self.state.led)
            else:
                self.state.led = wanted
                logger.info("LED turned %s", "ON" if wanted else "OFF")

            self.state.last_update = self.now()
            led = self.state.led
            self.broadcaster.post(
                "ledStateChanged",
                {"led": led, "timestamp": iso_timestamp(self.state.last_update)},
            )
        self.broadcaster.flush()
        return led

    def set_fan(self, requested: Any) -> bool:
        with self.state.lock:
            if not self.state.allow_fan_control:
                logger.warning("Fan command rejected: fan control is disabled")
                raise FanControlDisabled("Fan control is disabled")

            wanted = parse_switch(requested)
            if wanted is None:
                logger.warning("Fan command %r rejected: invalid state", requested)
                raise InvalidState("Invalid fan state")

            self.state.fan = wanted
            self.state.last_update = self.now()
            logger.info("Fan turned %s", "ON" if wanted else "OFF")
            self.broadcaster.post(
                "fanStateChanged",
                {"fan": wanted, "timestamp": iso_timestamp(self.state.last_update)},
            )
        self.broadcaster.flush()
        return wanted

    # -- settings ------------------------------------------------------

    def apply_settings(self, *, allow_fan_control: Any = UNSET, algo: Any = UNSET) -> Dict[str, Any]:
        """Validate every supplied field, then apply them together.

        An invalid algorithm rejects the whole call and leaves both fields
        untouched.
        """
        new_flag: Optional[bool] = None
        if allow_fan_control is not UNSET:
            new_flag = coerce_flag(allow_fan_control)

        new_algo: Optional[str] = None
        if algo is not UNSET and algo is not None:
            try:
                new_algo = resolve(algo).name
            except UnsupportedAlgorithm as exc:
                logger.warning("Settings rejected: %s", exc)
                raise InvalidAlgorithm("Invalid encryption algorithm. Use AES or DES.") from exc

        with self.state.lock:
            if new_flag is not None:
                self.state.allow_fan_control = new_flag
            if new_algo is not None:
                self.state.active_algo = new_algo

            logger.info(
                "Settings updated: allowFanControl=%s encAlgo=%s",
                self.state.allow_fan_control,
                self.state.active_algo,
            )
            self.broadcaster.post(
                "settingsUpdated",
                {"allowFanControl": self.state.allow_fan_control, "encAlgo": self.state.active_algo},
            )
            result = {
                "allowFanControl": self.state.allow_fan_control,
                "encAlgo": self.state.active_algo,
                "dataHealth": self.health().to_dict(),
            }
        self.broadcaster.flush()
        return result
