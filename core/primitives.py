from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# History ring capacity (entries).
HISTORY_CAPACITY = 500


def canonical_json_bytes(obj: Any) -> bytes:
    """Deterministic canonical JSON encoding (UTF-8)."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(ts: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with millisecond precision and a trailing Z; None stays None."""
    if ts is None:
        return None
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Envelope:
    """Self-describing ciphertext: algorithm name, IV and ciphertext."""

    algo: str
    iv: bytes
    data: bytes

    def to_dict(self) -> Dict[str, str]:
        """Wire form with base64 IV and ciphertext."""
        return {
            "algo": self.algo,
            "iv": base64.b64encode(self.iv).decode("ascii"),
            "data": base64.b64encode(self.data).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Envelope":
        if not isinstance(payload, dict):
            raise ValueError("Malformed envelope: expected a mapping")
        missing = {"algo", "iv", "data"} - payload.keys()
        if missing:
            raise ValueError(f"Malformed envelope: missing {sorted(missing)}")
        return cls(
            algo=str(payload["algo"]),
            iv=base64.b64decode(payload["iv"]),
            data=base64.b64decode(payload["data"]),
        )
