from __future__ import annotations

import math
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

import yaml

from core.suites import UnsupportedAlgorithm, resolve


DEFAULT_CONFIG_PATH = "config/device.yaml"


@dataclass(frozen=True)
class DeviceConfig:
    """Process configuration for the emulated device."""

    update_period_ms: int = 5000
    temp_min: float = 20.0
    temp_max: float = 35.0
    hum_min: float = 40.0
    hum_max: float = 80.0
    secret: str = "165743"
    default_algo: str = "AES"
    health_max_age_ms: Optional[int] = None
    forward_enabled: bool = False
    forward_url: Optional[str] = None
    forward_timeout_s: float = 2.0
    port: int = 4000
    seed: Optional[int] = None

    @property
    def max_age_ms(self) -> int:
        """Freshness threshold: explicit override, else two update periods."""
        if self.health_max_age_ms:
            return self.health_max_age_ms
        return self.update_period_ms * 2


def _as_flag(value: Any) -> bool:
    """Only a real boolean or the string "true" enables a flag."""
    if isinstance(value, str):
        return value == "true"
    return value is True


# Environment variable -> (field, converter)
_ENV_OVERRIDES = {
    "TEMP_INTERVAL": ("update_period_ms", int),
    "TEMP_MIN": ("temp_min", float),
    "TEMP_MAX": ("temp_max", float),
    "HUM_MIN": ("hum_min", float),
    "HUM_MAX": ("hum_max", float),
    "DATA_SECRET": ("secret", str),
    "ENC_ALGO": ("default_algo", str),
    "DATA_HEALTH_MAX_AGE_MS": ("health_max_age_ms", int),
    "SEND_TO_MAIN_SERVER": ("forward_enabled", _as_flag),
    "MAIN_SERVER_URL": ("forward_url", str),
    "PORT": ("port", int),
}


def _load_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except Exception as exc:
        raise RuntimeError(f"Config load failure: {path}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RuntimeError("Config load failure: expected a mapping")
    return data


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise RuntimeError(f"Config load failure: '{name}' must be a mapping")
    return value


def _from_mapping(data: Mapping[str, Any]) -> Dict[str, Any]:
    sensors = _section(data, "sensors")
    temperature = _section(sensors, "temperature")
    humidity = _section(sensors, "humidity")
    encryption = _section(data, "encryption")
    health = _section(data, "health")
    forwarding = _section(data, "forwarding")
    server = _section(data, "server")

    candidates = {
        "update_period_ms": sensors.get("interval_ms"),
        "seed": sensors.get("seed"),
        "temp_min": temperature.get("min"),
        "temp_max": temperature.get("max"),
        "hum_min": humidity.get("min"),
        "hum_max": humidity.get("max"),
        "secret": encryption.get("secret"),
        "default_algo": encryption.get("default_algo"),
        "health_max_age_ms": health.get("max_age_ms"),
        "forward_enabled": forwarding.get("enabled"),
        "forward_url": forwarding.get("url"),
        "forward_timeout_s": forwarding.get("timeout_s"),
        "port": server.get("port"),
    }
    return {k: v for k, v in candidates.items() if v is not None}


def _from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for var, (name, convert) in _ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        try:
            overrides[name] = convert(raw)
        except ValueError as exc:
            raise RuntimeError(f"Config load failure: bad value for {var}: {raw!r}") from exc
    return overrides


def validate(config: DeviceConfig) -> DeviceConfig:
    if config.update_period_ms <= 0:
        raise RuntimeError("Config load failure: update period must be positive")
    if config.temp_min > config.temp_max:
        raise RuntimeError("Config load failure: temperature min > max")
    if config.hum_min > config.hum_max:
        raise RuntimeError("Config load failure: humidity min > max")
    bounds = (
        ("temperature", config.temp_min, config.temp_max),
        ("humidity", config.hum_min, config.hum_max),
    )
    for name, low, high in bounds:
        if math.ceil(low) > math.floor(high):
            raise RuntimeError(f"Config load failure: no whole {name} value within [{low}, {high}]")
    if config.health_max_age_ms is not None and config.health_max_age_ms < 0:
        raise RuntimeError("Config load failure: health max age must not be negative")
    try:
        profile = resolve(config.default_algo)
    except UnsupportedAlgorithm as exc:
        raise RuntimeError(f"Config load failure: {exc}") from exc
    return replace(config, default_algo=profile.name)


def load_config(path: Optional[str] = None, *, env: Optional[Mapping[str, str]] = None) -> DeviceConfig:
    """Build a DeviceConfig from defaults, an optional YAML file and the environment.

    Precedence (lowest first): dataclass defaults, YAML file, environment.
    Any malformed input fails closed with RuntimeError.
    """
    values: Dict[str, Any] = {}
    if path is not None:
        values.update(_from_mapping(_load_yaml(path)))
    values.update(_from_env(os.environ if env is None else env))

    try:
        config = DeviceConfig(**values)
        config = replace(
            config,
            update_period_ms=int(config.update_period_ms),
            temp_min=float(config.temp_min),
            temp_max=float(config.temp_max),
            hum_min=float(config.hum_min),
            hum_max=float(config.hum_max),
            secret=str(config.secret),
            forward_enabled=_as_flag(config.forward_enabled),
            forward_timeout_s=float(config.forward_timeout_s),
            port=int(config.port),
        )
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"Config load failure: {exc}") from exc

    return validate(config)
