from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Observer = Callable[[str, Dict[str, Any]], None]


class Broadcaster:
    """Fire-and-forget fan-out of named events to subscribed observers.

    Events are queued with ``post`` (cheap, safe under the device lock, keeps
    posting order) and delivered by ``flush`` once the caller has released its
    lock. Only one thread delivers at a time; a thread that finds delivery in
    progress leaves its events to that thread instead of waiting on it. A
    failing observer is logged and skipped.
    """

    def __init__(self):
        self._observers: List[Observer] = []
        self._lock = threading.Lock()
        self._outbox: Deque[Tuple[str, Dict[str, Any], Sequence[Observer]]] = deque()
        self._delivering = threading.Lock()

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def send(self, observer: Observer, event: str, payload: Dict[str, Any]) -> bool:
        """Deliver to a single observer now; False when it raised."""
        try:
            observer(event, payload)
        except Exception:
            logger.warning("Observer %r failed on %s", observer, event, exc_info=True)
            return False
        return True

    def post(self, event: str, payload: Dict[str, Any], *, targets: Optional[Sequence[Observer]] = None) -> None:
        """Queue an event for the current subscribers (or only ``targets``)."""
        if targets is None:
            with self._lock:
                targets = list(self._observers)
        self._outbox.append((event, payload, targets))

    def flush(self) -> int:
        """Deliver queued events in order; returns deliveries made by this call."""
        delivered = 0
        while self._outbox:
            if not self._delivering.acquire(blocking=False):
                return delivered
            try:
                while True:
                    try:
                        event, payload, targets = self._outbox.popleft()
                    except IndexError:
                        break
                    delivered += sum(1 for observer in targets if self.send(observer, event, payload))
            finally:
                self._delivering.release()
        return delivered

    def publish(self, event: str, payload: Dict[str, Any]) -> int:
        self.post(event, payload)
        return self.flush()

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)
