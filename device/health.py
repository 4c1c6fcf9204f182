from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from core.primitives import iso_timestamp, utc_now


OK = "OK"
STALE = "STALE"
UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class HealthVerdict:
    status: str
    age_ms: Optional[int]
    is_fresh: bool
    last_update: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "ageMs": self.age_ms,
            "isFresh": self.is_fresh,
            "lastUpdate": iso_timestamp(self.last_update),
        }


def evaluate(last_update: Optional[datetime], max_age_ms: int, *, now: Optional[datetime] = None) -> HealthVerdict:
    """Judge whether the last state update is recent enough to be trusted live.

    Fresh means ``now - last_update <= max_age_ms``; a missing timestamp is
    UNKNOWN. Pass ``now`` for a fixed clock.
    """
    if last_update is None:
        return HealthVerdict(status=UNKNOWN, age_ms=None, is_fresh=False, last_update=None)

    current = utc_now() if now is None else now
    age_ms = (current - last_update) // timedelta(milliseconds=1)
    is_fresh = age_ms <= max_age_ms

    return HealthVerdict(
        status=OK if is_fresh else STALE,
        age_ms=age_ms,
        is_fresh=is_fresh,
        last_update=last_update,
    )
