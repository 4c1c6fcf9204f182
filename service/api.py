from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from core.config import DeviceConfig
from core.primitives import utc_now
from core.suites import UnsupportedAlgorithm
from device.controller import (
    DeviceController,
    FanControlDisabled,
    InvalidAlgorithm,
    InvalidState,
    UNSET,
)
from device.sensors import SimulatedSensors
from device.state import DeviceState
from service.broadcast import Broadcaster, Observer
from service.cycle import UpdateCycle
from service.forwarder import Forwarder

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]


class DeviceAPI:
    """Route handlers for the device's control and query surface.

    Each handler takes the decoded JSON body / query mapping and returns
    ``(http_status, json_body)``. Binding to an HTTP or WebSocket framework
    is left to the caller; ``connect`` is the realtime channel hook.
    """

    def __init__(self, controller: DeviceController, cycle: Optional[UpdateCycle] = None):
        self.controller = controller
        self.cycle = cycle
        self._routes: Dict[Tuple[str, str], Callable[[Mapping[str, Any], Mapping[str, Any]], Response]] = {
            ("POST", "/led"): lambda body, query: self.post_led(body),
            ("POST", "/fan"): lambda body, query: self.post_fan(body),
            ("POST", "/settings"): lambda body, query: self.post_settings(body),
            ("GET", "/sensor"): lambda body, query: self.get_sensor(),
            ("GET", "/status"): lambda body, query: self.get_status(),
            ("GET", "/data-health"): lambda body, query: self.get_data_health(),
            ("GET", "/sensor_encrypted"): lambda body, query: self.get_encrypted("sensor", query),
            ("GET", "/humidity_encrypted"): lambda body, query: self.get_encrypted("humidity", query),
        }

    @classmethod
    def from_config(cls, config: DeviceConfig, *, clock: Callable[[], datetime] = utc_now) -> "DeviceAPI":
        """Wire state, controller, sensors, forwarder and update cycle."""
        state = DeviceState(active_algo=config.default_algo, last_update=clock())
        controller = DeviceController(state, config, Broadcaster(), clock=clock)
        sensors = SimulatedSensors(
            temp_bounds=(config.temp_min, config.temp_max),
            hum_bounds=(config.hum_min, config.hum_max),
            seed=config.seed,
        )
        forwarder = Forwarder(
            config.forward_url,
            enabled=config.forward_enabled,
            timeout_s=config.forward_timeout_s,
            port=config.port,
        )
        return cls(controller, UpdateCycle(controller, sensors, forwarder=forwarder))

    def routes(self):
        return sorted(self._routes)

    def dispatch(
        self,
        method: str,
        path: str,
        body: Optional[Mapping[str, Any]] = None,
        query: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        handler = self._routes.get((method.upper(), path))
        if handler is None:
            return 404, {"success": False, "message": f"No route for {method.upper()} {path}"}
        return handler(body or {}, query or {})

    def connect(self, observer: Observer) -> Callable[[], None]:
        logger.info("Client connected to view")
        return self.controller.connect(observer)

    # -- control -------------------------------------------------------

    def post_led(self, body: Mapping[str, Any]) -> Response:
        led = self.controller.set_led(body.get("state"))
        return 200, {"success": True, "led": led, "message": f"LED {'ON' if led else 'OFF'}"}

    def post_fan(self, body: Mapping[str, Any]) -> Response:
        try:
            fan = self.controller.set_fan(body.get("state"))
        except FanControlDisabled as exc:
            return 403, {"success": False, "message": str(exc)}
        except InvalidState as exc:
            return 400, {"success": False, "message": str(exc)}
        return 200, {"success": True, "fan": fan, "message": f"FAN {'ON' if fan else 'OFF'}"}

    def post_settings(self, body: Mapping[str, Any]) -> Response:
        try:
            result = self.controller.apply_settings(
                allow_fan_control=body.get("allowFanControl", UNSET),
                algo=body.get("algo", UNSET),
            )
        except InvalidAlgorithm as exc:
            return 400, {"success": False, "message": str(exc)}
        return 200, {"success": True, **result}

    # -- queries -------------------------------------------------------

    def get_sensor(self) -> Response:
        return 200, self.controller.sensor_reading()

    def get_status(self) -> Response:
        return 200, self.controller.status()

    def get_data_health(self) -> Response:
        return 200, self.controller.health().to_dict()

    def get_encrypted(self, kind: str, query: Mapping[str, Any]) -> Response:
        algo = query.get("algo") or None
        try:
            envelope = self.controller.export_encrypted(kind, algo)
        except UnsupportedAlgorithm as exc:
            return 400, {"encrypted": False, "error": str(exc)}
        except Exception:
            logger.exception("/%s_encrypted error", kind)
            return 500, {"encrypted": False, "error": "encryption error"}
        return 200, {"encrypted": True, **envelope.to_dict()}
