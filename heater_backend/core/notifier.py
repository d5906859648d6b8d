from __future__ import annotations

import logging
import threading
from typing import Callable, List

from heater_backend.core.state import Snapshot


logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Snapshot], None]


class Notifier:
    """
    Rejestr subskrybentów nowych danych (np. hub WebSocket).
    Subskrybent dostaje cały snapshot; jego błędy nie wpływają na innych.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: List[SnapshotCallback] = []

    def subscribe(self, callback: SnapshotCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: SnapshotCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def publish(self, snapshot: Snapshot) -> int:
        """Zwraca liczbę subskrybentów, którym udało się doręczyć snapshot."""
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for cb in subscribers:
            try:
                cb(snapshot)
                delivered += 1
            except Exception:  # pylint: disable=broad-except
                logger.exception("Snapshot subscriber %r raised an exception", cb)
        return delivered
