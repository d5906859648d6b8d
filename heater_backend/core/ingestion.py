# heater_backend/core/ingestion.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set
import logging
import threading

from heater_backend.core.catalogs import ErrorCatalog, ValueCatalog
from heater_backend.core.clock import Clock, RealClock
from heater_backend.core.door_tracker import DoorOpeningTracker
from heater_backend.core.errors import MissingValueTypeError
from heater_backend.core.notifier import Notifier
from heater_backend.core.state import (
    CurrentValue,
    DataPoint,
    ErrorRef,
    HeaterReading,
    HeaterValue,
    NumericValue,
)
from heater_backend.core.state_store import CurrentStateStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReservedIds:
    """Typy wartości o specjalnym znaczeniu w protokole pieca."""
    status: int = 1
    error: int = 99
    door_openings: int = 200


def parse_numeric(raw_value: object, scale_factor: float) -> float:
    """
    Surowa wartość / mnożnik. Mnożnik 0 traktujemy jak 1.
    Rzuca ValueError/TypeError dla wartości nieliczbowych.
    """
    factor = float(scale_factor or 0.0)
    if factor == 0.0:
        factor = 1.0
    text = raw_value.strip() if isinstance(raw_value, str) else raw_value
    return float(text) / factor


class IngestionEngine:
    """
    Przyjmuje paczki odczytów z pieca, aktualizuje store i powiadamia
    subskrybentów (raz na paczkę, tylko jeśli coś się zmieniło).

    Cała paczka jest przetwarzana pod jednym lockiem – tracker drzwiczek
    i kolejność publikacji zakładają jedną ścieżkę zapisu.
    """

    def __init__(
        self,
        *,
        value_catalog: ValueCatalog,
        error_catalog: ErrorCatalog,
        store: CurrentStateStore,
        notifier: Notifier,
        clock: Clock | None = None,
        reserved: ReservedIds | None = None,
        wait_until_ready: Optional[Callable[[], None]] = None,
    ) -> None:
        self._values = value_catalog
        self._errors = error_catalog
        self._store = store
        self._notifier = notifier
        self._clock = clock or RealClock()
        self._reserved = reserved or ReservedIds()
        self._wait_until_ready = wait_until_ready

        self._tracker = DoorOpeningTracker(clock=self._clock)
        self._batch_lock = threading.Lock()
        self._warned_unknown_ids: Set[int] = set()

    @property
    def door_tracker(self) -> DoorOpeningTracker:
        return self._tracker

    def submit_readings(self, batch: Iterable[HeaterReading]) -> bool:
        """
        Przetwarza paczkę odczytów w kolejności. Zwraca True, jeśli coś się
        zmieniło (i snapshot został opublikowany).
        """
        if self._wait_until_ready is not None:
            self._wait_until_ready()

        readings = list(batch)
        logger.debug("submit_readings: %d readings", len(readings))

        with self._batch_lock:
            # błąd konfiguracji zgłaszamy, zanim cokolwiek zmienimy w store
            self._require_door_openings(readings)

            changed = False
            for reading in readings:
                try:
                    if self._apply_reading(reading):
                        changed = True
                except Exception:  # pylint: disable=broad-except
                    logger.exception(
                        "Skipping reading %s (id %s), previous value kept",
                        reading.name,
                        reading.index,
                    )

            if changed:
                self._notifier.publish(self._store.snapshot())

        return changed

    # ---------- pojedynczy odczyt ----------

    def _apply_reading(self, reading: HeaterReading) -> bool:
        now = self._clock.time()
        vid = int(reading.index)

        descriptor = self._values.get(vid)
        if descriptor is None:
            self._warn_unknown_once(vid, reading)

        value = self._candidate_value(reading)
        changed = False

        if vid == self._reserved.status and isinstance(value, NumericValue):
            changed = self._update_door_openings(int(value.value), now)

        cas_changed = self._store.compare_and_set(
            vid,
            DataPoint(value=value, timestamp=now),
            label=descriptor.label if descriptor else reading.name,
            unit=descriptor.unit if descriptor else reading.unit,
            is_logged=descriptor.is_logged if descriptor else False,
        )
        return changed or cas_changed

    def _candidate_value(self, reading: HeaterReading) -> HeaterValue:
        if int(reading.index) == self._reserved.error:
            text = (reading.raw_value or "").strip()
            return ErrorRef(self._errors.resolve_or_create(text))

        try:
            return NumericValue(parse_numeric(reading.raw_value, reading.scale_factor))
        except (TypeError, ValueError):
            logger.error(
                "Could not convert value %r of %s (id %s) to a number, using 0",
                reading.raw_value,
                reading.name,
                reading.index,
            )
            return NumericValue(0.0)

    def _require_door_openings(self, readings: List[HeaterReading]) -> None:
        door_id = self._reserved.door_openings
        if self._values.get(door_id) is not None:
            return
        if any(int(r.index) == self._reserved.status for r in readings):
            raise MissingValueTypeError(door_id, "door openings")

    def _update_door_openings(self, status: int, now: float) -> bool:
        door_id = self._reserved.door_openings
        descriptor = self._values.get(door_id)
        if descriptor is None:
            raise MissingValueTypeError(door_id, "door openings")

        tracker_changed = self._tracker.update(status)

        current = self._store.get(door_id)
        placeholder = current is None or current.latest.timestamp is None
        if tracker_changed or placeholder:
            self._store.put(
                CurrentValue(
                    value_type_id=door_id,
                    label=descriptor.label,
                    unit=descriptor.unit,
                    is_logged=current.is_logged if current is not None else descriptor.is_logged,
                    latest=DataPoint(value=NumericValue(self._tracker.total_open_seconds()), timestamp=now),
                )
            )
        return tracker_changed

    def _warn_unknown_once(self, vid: int, reading: HeaterReading) -> None:
        if vid in self._warned_unknown_ids:
            return
        self._warned_unknown_ids.add(vid)
        logger.warning(
            "Received value type %s (%r) which has no value description; storing it as ad hoc entry",
            vid,
            reading.name,
        )
