from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests

logger = logging.getLogger(__name__)

FORWARD_PATH = "/api/sensor-data"


class Forwarder:
    """Best-effort push of sensor readings to an external aggregator.

    Each post runs on its own daemon thread with a bounded timeout. Errors,
    timeouts and non-200 answers are dropped; there is no retry.
    """

    def __init__(self, url: Optional[str], *, enabled: bool = False, timeout_s: float = 2.0, port: int = 4000):
        self.url = url
        self.enabled = enabled
        self.timeout_s = timeout_s
        self.port = port

    @property
    def active(self) -> bool:
        return bool(self.enabled and self.url)

    def build_payload(self, reading: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "ip": f"localhost:{self.port}",
            "temperature": reading["temperature"],
            "humidity": reading["humidity"],
            "timestamp": reading["timestamp"],
        }

    def forward(self, reading: Dict[str, Any]) -> Optional[threading.Thread]:
        """Start a background post; returns the thread, or None when inactive."""
        if not self.active:
            return None

        worker = threading.Thread(
            target=self._post,
            args=(self.build_payload(reading),),
            name="aggregator-forward",
            daemon=True,
        )
        worker.start()
        return worker

    def _post(self, payload: Dict[str, Any]) -> bool:
        target = urljoin(self.url, FORWARD_PATH)
        try:
            response = requests.post(target, json=payload, timeout=self.timeout_s)
        except requests.RequestException as exc:
            logger.debug("Forward to %s dropped: %s", target, exc)
            return False

        if response.status_code == 200:
            logger.debug("Sent sensor data to %s", target)
            return True
        logger.debug("Forward to %s answered %s", target, response.status_code)
        return False
