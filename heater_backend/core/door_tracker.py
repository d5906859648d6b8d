# heater_backend/core/door_tracker.py
from __future__ import annotations

import logging
from typing import FrozenSet, List, Tuple

from heater_backend.core.clock import Clock, RealClock
from heater_backend.core.state import DoorOpening


logger = logging.getLogger(__name__)

# statusy pieca
FIRE_BURNING_STATES: FrozenSet[int] = frozenset({2, 3, 4})   # rozpalanie / palenie
DOOR_CLOSED_STATES: FrozenSet[int] = frozenset({35, 56})     # czekanie na zapłon / przewietrzanie
DOOR_OPEN_STATE = 6


class DoorOpeningTracker:
    """
    Liczy łączny czas otwarcia drzwiczek od wygaśnięcia ognia.

    Na wejściu dostaje kolejne kody statusu pieca:
    - 2/3/4 (ogień się pali / rozpalanie) -> czyścimy listę otwarć,
    - 35/56 (stan po zamknięciu drzwiczek) -> zamykamy otwarty przedział,
    - 6 (drzwiczki otwarte) -> otwieramy nowy przedział (jeśli nie ma otwartego).

    Tylko ostatni przedział może mieć end=None.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or RealClock()
        self._openings: List[DoorOpening] = []

    @property
    def openings(self) -> Tuple[DoorOpening, ...]:
        return tuple(DoorOpening(start=o.start, end=o.end) for o in self._openings)

    @property
    def is_open(self) -> bool:
        return bool(self._openings) and self._openings[-1].end is None

    def update(self, status: int) -> bool:
        """
        Przetwarza jeden kod statusu. Zwraca True, jeśli zmieniła się lista otwarć
        (albo drzwiczki są otwarte, więc czas otwarcia rośnie).
        """
        now = self._clock.time()

        if status in FIRE_BURNING_STATES:
            if not self._openings:
                return False
            logger.debug("Fire burning/starting (status %s): clearing %d door openings", status, len(self._openings))
            self._openings.clear()
            return True

        if status in DOOR_CLOSED_STATES and self._openings:
            last = self._openings[-1]
            if last.end is None:
                logger.debug("Door closed (status %s) after %.1fs", status, now - last.start)
                last.end = now
                return True
            return False

        if status == DOOR_OPEN_STATE:
            if not self.is_open:
                logger.debug("Door opened")
                self._openings.append(DoorOpening(start=now, end=None))
            return True

        return False

    def total_open_seconds(self) -> float:
        now = self._clock.time()
        return sum(o.duration(now) for o in self._openings)

    def reset(self) -> None:
        self._openings.clear()
