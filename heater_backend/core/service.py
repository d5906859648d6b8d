# heater_backend/core/service.py
from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union
import logging

from heater_backend.core.catalogs import ErrorCatalog, ValueCatalog
from heater_backend.core.clock import Clock, RealClock
from heater_backend.core.errors import CatalogLoadError, CatalogNotReadyError
from heater_backend.core.ingestion import IngestionEngine, ReservedIds, parse_numeric
from heater_backend.core.notifier import Notifier, SnapshotCallback
from heater_backend.core.state import (
    ErrorDescriptor,
    HeaterReading,
    HistoryPoint,
    LoggingState,
    Snapshot,
    ValueDescriptor,
)
from heater_backend.core.state_store import CurrentStateStore
from heater_backend.data.repository import HeaterRepository


logger = logging.getLogger(__name__)


@dataclass
class HistorySeries:
    """Historia jednego typu wartości (odpowiedź dla GUI)."""
    value_type_id: int
    label: str
    unit: Optional[str]
    is_logged: bool
    points: List[Tuple[float, Union[float, str, None]]] = field(default_factory=list)


class HeaterDataService:
    """
    Serwis danych pieca – właściciel katalogów, store i silnika ingestion.

    Katalogi ładują się asynchronicznie (w tle) zaraz po utworzeniu serwisu.
    submit_readings() czeka na ich załadowanie; błąd ładowania jest błędem
    krytycznym startu (wait_until_ready() go rzuca).
    """

    def __init__(
        self,
        repository: HeaterRepository,
        *,
        clock: Clock | None = None,
        reserved: ReservedIds | None = None,
        ready_timeout_s: Optional[float] = 60.0,
    ) -> None:
        self._repository = repository
        self._clock = clock or RealClock()
        self._reserved = reserved or ReservedIds()
        self._ready_timeout_s = ready_timeout_s

        self.value_catalog = ValueCatalog(repository)
        self.error_catalog = ErrorCatalog(repository)
        self.store = CurrentStateStore()
        self.notifier = Notifier()

        self.engine = IngestionEngine(
            value_catalog=self.value_catalog,
            error_catalog=self.error_catalog,
            store=self.store,
            notifier=self.notifier,
            clock=self._clock,
            reserved=self._reserved,
            wait_until_ready=self.wait_until_ready,
        )

        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="catalog_load")
        self._values_future: Future = self._executor.submit(self._load_values)
        self._errors_future: Future = self._executor.submit(self.error_catalog.load)
        self._executor.shutdown(wait=False)

    @property
    def reserved(self) -> ReservedIds:
        return self._reserved

    @property
    def repository(self) -> HeaterRepository:
        return self._repository

    def _load_values(self) -> Dict[int, ValueDescriptor]:
        items = self.value_catalog.load()
        self.store.seed(items.values(), error_value_type_id=self._reserved.error)

        if self._reserved.door_openings not in items:
            logger.warning(
                "Value type %s (door openings) is not configured; status readings will fail",
                self._reserved.door_openings,
            )
        return items

    # ---------- gotowość ----------

    def wait_until_ready(self, timeout: Optional[float] = None) -> None:
        timeout = self._ready_timeout_s if timeout is None else timeout
        futures = (self._values_future, self._errors_future)
        _, not_done = wait(futures, timeout=timeout)
        if not_done:
            raise CatalogNotReadyError(f"Catalogs not loaded within {timeout}s")

        for fut in futures:
            exc = fut.exception()
            if exc is None:
                continue
            if isinstance(exc, CatalogLoadError):
                raise exc
            raise CatalogLoadError(f"Catalog load failed: {exc}") from exc

    @property
    def is_ready(self) -> bool:
        return all(
            f.done() and f.exception() is None
            for f in (self._values_future, self._errors_future)
        )

    # ---------- API rdzenia ----------

    def submit_readings(self, batch: Iterable[HeaterReading]) -> bool:
        return self.engine.submit_readings(batch)

    def get_current_snapshot(self) -> Snapshot:
        return self.store.snapshot()

    def subscribe(self, callback: SnapshotCallback) -> None:
        self.notifier.subscribe(callback)

    def unsubscribe(self, callback: SnapshotCallback) -> None:
        self.notifier.unsubscribe(callback)

    def value_descriptions(self) -> Dict[int, ValueDescriptor]:
        self.wait_until_ready()
        return self.value_catalog.all()

    def error_descriptions(self) -> Dict[int, ErrorDescriptor]:
        self.wait_until_ready()
        return self.error_catalog.all()

    # ---------- administracja ----------

    def set_logging_state(self, states: Iterable[LoggingState]) -> List[ValueDescriptor]:
        """
        Zmienia flagi logowania w repozytorium, a potem przeładowuje
        dotknięte wpisy katalogu i store.
        """
        self.wait_until_ready()
        states = list(states)
        self._repository.set_logging_state(states)

        reloaded = self.value_catalog.reload(st.value_type_id for st in states)
        for d in reloaded:
            self.store.set_logged(d.id, d.is_logged)

        logger.info("Logging state changed for value types: %s", [d.id for d in reloaded])
        return reloaded

    # ---------- historia ----------

    def get_history(self, from_ts: float, to_ts: float) -> Dict[int, HistorySeries]:
        self.wait_until_ready()

        result: Dict[int, HistorySeries] = {
            d.id: HistorySeries(value_type_id=d.id, label=d.label, unit=d.unit, is_logged=d.is_logged)
            for d in self.value_catalog.all().values()
        }

        skipped: Set[int] = set()
        for row in self._repository.get_data_values(from_ts, to_ts):
            series = result.get(row.value_type_id)
            if series is None:
                if row.value_type_id not in skipped:
                    skipped.add(row.value_type_id)
                    logger.warning(
                        "History row for value type %s has no value description; skipping",
                        row.value_type_id,
                    )
                continue

            value: Union[float, str, None] = row.value
            if row.value_type_id == self._reserved.error and row.value is not None:
                err = self.error_catalog.get(int(row.value))
                if err is not None:
                    value = err.text
            series.points.append((row.timestamp, value))

        return result

    def import_history(self, readings: Iterable[HeaterReading], resolution_s: float = 900.0) -> int:
        """
        Zapisuje historyczne odczyty (z własnym timestampem) w rozdzielczości
        historii: dla każdego typu wartości i każdego okna resolution_s zostaje
        najnowszy odczyt. Zwraca liczbę zapisanych punktów.
        """
        if resolution_s <= 0:
            raise ValueError("resolution_s must be > 0")

        latest: Dict[Tuple[int, int], HeaterReading] = {}
        for r in readings:
            if r.timestamp is None:
                raise ValueError(f"Historic reading {r.name!r} has no timestamp")
            key = (int(r.index), int(r.timestamp // resolution_s))
            prev = latest.get(key)
            if prev is None or prev.timestamp < r.timestamp:
                latest[key] = r

        points: List[HistoryPoint] = []
        for (vid, _), r in sorted(latest.items()):
            try:
                value = parse_numeric(r.raw_value, r.scale_factor)
            except (TypeError, ValueError):
                logger.error("Skipping historic value %r of %s (id %s)", r.raw_value, r.name, vid)
                continue
            points.append(HistoryPoint(value_type_id=vid, value=value, timestamp=float(r.timestamp)))

        if points:
            self._repository.bulk_insert_history(points)
        return len(points)
