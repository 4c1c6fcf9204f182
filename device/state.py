from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from core.ledger import HistoryLedger
from core.primitives import iso_timestamp, utc_now


@dataclass
class DeviceState:
    """Single owned instance of the device's mutable state.

    Every read or write of the fields below (including ``active_algo`` and
    ``history``) must happen while holding ``lock``.
    """

    led: bool = False
    fan: bool = False
    allow_fan_control: bool = True
    temperature: float = 25.0
    humidity: float = 60.0
    last_update: Optional[datetime] = field(default_factory=utc_now)
    active_algo: str = "AES"
    history: HistoryLedger = field(default_factory=HistoryLedger, repr=False)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def to_wire(self) -> Dict[str, Any]:
        """Camel-cased public view of the actuator and sensor values."""
        return {
            "led": self.led,
            "fan": self.fan,
            "allowFanControl": self.allow_fan_control,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "lastUpdate": iso_timestamp(self.last_update),
        }
