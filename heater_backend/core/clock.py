from __future__ import annotations

import time
import threading
from typing_extensions import Protocol


class Clock(Protocol):
    def time(self) -> float: ...


class RealClock:
    def time(self) -> float:
        return time.time()


class SimClock:
    """
    Zegar symulowany dla testów: czas odczytów, otwarć drzwiczek i interwałów zadań.

    - auto=True: czas płynie razem z czasem rzeczywistym (monotonicznie),
    - auto=False: czas stoi, dopóki nie zrobisz advance(dt) albo set(ts).
    """

    def __init__(self, *, start_ts: float | None = None, auto: bool = False) -> None:
        self._auto = bool(auto)
        self._ts = time.time() if start_ts is None else float(start_ts)
        self._last_real_mono = time.monotonic()
        self._lock = threading.Lock()

    def advance(self, dt: float) -> None:
        if dt < 0:
            raise ValueError("dt must be >= 0")
        with self._lock:
            self._sync_locked()
            self._ts += dt

    def set(self, ts: float) -> None:
        with self._lock:
            self._last_real_mono = time.monotonic()
            self._ts = float(ts)

    def _sync_locked(self) -> None:
        now_real = time.monotonic()
        dt_real = max(0.0, now_real - self._last_real_mono)
        self._last_real_mono = now_real
        if self._auto:
            self._ts += dt_real

    def time(self) -> float:
        with self._lock:
            self._sync_locked()
            return self._ts
