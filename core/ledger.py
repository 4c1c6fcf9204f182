from __future__ import annotations

from collections import deque
from typing import Deque, List

from core.primitives import HISTORY_CAPACITY, Envelope


class HistoryLedger:
    """Bounded append-only log of encrypted history envelopes.

    Entries are kept in insertion order (oldest first). Once ``capacity`` is
    exceeded the oldest entries are evicted. Nothing in the device reads
    entries back; ``dump`` exists for inspection and offline decryption.
    """

    def __init__(self, capacity: int = HISTORY_CAPACITY):
        if capacity <= 0:
            raise ValueError("History capacity must be positive")
        self._capacity = capacity
        self._entries: Deque[Envelope] = deque()

    def append(self, envelope: Envelope) -> None:
        if not isinstance(envelope, Envelope):
            raise TypeError("Refusing to ledger a non-envelope entry")

        self._entries.append(envelope)
        while len(self._entries) > self._capacity:
            self._entries.popleft()

    def dump(self) -> List[Envelope]:
        return list(self._entries)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, envelope: object) -> bool:
        return envelope in self._entries
