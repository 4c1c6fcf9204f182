from __future__ import annotations

import logging
from typing import Any, Dict

from core.config import DEFAULT_CONFIG_PATH, load_config
from core.crypto_utils import decrypt_envelope
from core.primitives import Envelope
from service.api import DeviceAPI


def _print_event(event: str, payload: Dict[str, Any]) -> None:
    print(f"[event] {event}: {payload}")


def run_simulation(cycles: int = 5) -> None:
    print("=== NORMAL: device update cycle ===")

    config = load_config(DEFAULT_CONFIG_PATH)
    api = DeviceAPI.from_config(config)
    api.connect(_print_event)

    for cycle in range(1, cycles + 1):
        print(f"\n--- Cycle {cycle} ---")
        health = api.cycle.tick()
        print(f"[Health] status={health.status} age={health.age_ms}ms")

    print("\n=== Actuators ===")
    print(api.dispatch("POST", "/led", {"state": "ON"}))
    print(api.dispatch("POST", "/fan", {"state": "ON"}))

    print("\n=== Switch cipher to DES ===")
    print(api.dispatch("POST", "/settings", {"algo": "des"}))

    status, body = api.dispatch("GET", "/sensor_encrypted")
    print(f"[Export] {status} {body}")
    record = decrypt_envelope(Envelope.from_dict(body), config.secret)
    print(f"[Export] decrypted with shared secret: {record}")

    print("\n=== History ===")
    history = api.controller.state.history
    print(f"{len(history)} encrypted entries (capacity {history.capacity})")
    for envelope in history.dump():
        print(envelope.to_dict())


def run_negative_settings_test(api: DeviceAPI) -> None:
    print("\n\n=== NEGATIVE TEST: Invalid algorithm ===")

    before = api.get_status()[1]
    status, body = api.dispatch("POST", "/settings", {"allowFanControl": False, "algo": "XYZ"})
    after = api.get_status()[1]
    print(f"[Settings] {status} {body}")

    if status != 400 or before["encAlgo"] != after["encAlgo"] or before["allowFanControl"] != after["allowFanControl"]:
        raise RuntimeError("Settings breach: invalid algorithm partially applied")
    print("[NEGATIVE] Settings test: rejected with state unchanged.")


def run_negative_fan_test(api: DeviceAPI) -> None:
    print("\n\n=== NEGATIVE TEST: Fan control disabled ===")

    api.dispatch("POST", "/settings", {"allowFanControl": "0"})
    status, body = api.dispatch("POST", "/fan", {"state": "ON"})
    print(f"[Fan] {status} {body}")

    if status != 403:
        raise RuntimeError("Fan breach: command accepted while control is disabled")
    print("[NEGATIVE] Fan test: command rejected.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    run_simulation()

    print("\n\n============================")
    print("Running explicit negative tests")
    print("============================")

    negative_api = DeviceAPI.from_config(load_config(DEFAULT_CONFIG_PATH))
    run_negative_settings_test(negative_api)
    run_negative_fan_test(negative_api)
