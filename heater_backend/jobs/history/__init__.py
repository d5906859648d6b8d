from __future__ import annotations

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Tuple
import logging
import threading

import yaml  # pip install pyyaml

from heater_backend.core.job_interface import JobInterface, JobTickResult
from heater_backend.core.state import HistoryPoint
from heater_backend.core.state_store import CurrentStateStore
from heater_backend.data.repository import HeaterRepository


logger = logging.getLogger(__name__)


# ---------- KONFIGURACJA RUNTIME ----------

@dataclass
class HistoryConfig:
    """
    Konfiguracja zapisu historii.

    interval_sec       – co ile sekund zbieramy punkty z bieżącego stanu.
    flush_interval_sec – co ile sekund bufor trafia do bazy (0 = przy każdym zbieraniu).
    max_buffer_points  – górny limit bufora, gdy baza długo nie odpowiada.
    """
    interval_sec: float = 900.0
    flush_interval_sec: float = 0.0
    max_buffer_points: float = 50000.0


class HistoryJob(JobInterface):
    """
    Okresowy zapis wartości logowanych (is_logged) do historii.

    Każdy tick bierze z store po jednym punkcie na typ wartości, ze znacznikiem
    czasu ticka – wartość stała też trafia do historii co interval_sec.
    Nieudany zapis zostawia bufor, kolejny tick ponawia.
    """

    def __init__(
        self,
        *,
        store: CurrentStateStore,
        repository: HeaterRepository,
        base_path: Path | None = None,
        config: HistoryConfig | None = None,
    ) -> None:
        self._store = store
        self._repository = repository

        self._base_path = base_path or Path(__file__).resolve().parent
        self._schema_path = self._base_path / "schema.yaml"
        self._config_path = self._base_path / "values.yaml"

        self._config = config or HistoryConfig()
        if config is None:
            self._load_config_from_file()

        self._lock = threading.Lock()
        self._buffer: Dict[Tuple[int, float], HistoryPoint] = {}
        self._last_flush: float | None = None

    @property
    def id(self) -> str:
        return "history"

    @property
    def interval_sec(self) -> float:
        return float(self._config.interval_sec)

    @property
    def pending_points(self) -> List[HistoryPoint]:
        with self._lock:
            return list(self._buffer.values())

    def tick(self, now: float, stop_event: threading.Event) -> JobTickResult:
        with self._lock:
            collected = self._collect(now)
            due = (
                self._last_flush is None
                or float(self._config.flush_interval_sec) <= 0
                or (now - self._last_flush) >= float(self._config.flush_interval_sec)
            )
            if not due or not self._buffer:
                return JobTickResult(did_work=False, data={"collected": collected})

            points = sorted(self._buffer.values(), key=lambda p: (p.timestamp, p.value_type_id))

        # anulowanie sprawdzamy tuż przed wywołaniem repozytorium
        if stop_event.is_set():
            logger.info("History flush cancelled, %d points stay buffered", len(points))
            return JobTickResult(did_work=False, data={"collected": collected})

        self._repository.bulk_insert_history(points)

        with self._lock:
            for p in points:
                self._buffer.pop((p.value_type_id, p.timestamp), None)
            self._last_flush = now

        logger.debug("History: persisted %d points", len(points))
        return JobTickResult(
            did_work=True,
            message=f"persisted {len(points)} history points",
            data={"collected": collected, "persisted": len(points)},
        )

    def _collect(self, now: float) -> int:
        # wołane pod self._lock; najwyżej jeden punkt na typ i tick
        collected = 0
        for p in self._store.loggable_points():
            key = (p.value_type_id, now)
            if key not in self._buffer:
                self._buffer[key] = HistoryPoint(value_type_id=p.value_type_id, value=p.value, timestamp=now)
                collected += 1

        limit = int(self._config.max_buffer_points)
        overflow = len(self._buffer) - limit
        if limit > 0 and overflow > 0:
            oldest = sorted(self._buffer, key=lambda k: k[1])[:overflow]
            for key in oldest:
                del self._buffer[key]
            logger.warning("History buffer full, dropped %d oldest points", overflow)

        return collected

    # ---------- CONFIG (schema + values) ----------

    def get_config_schema(self) -> Dict[str, Any]:
        if not self._schema_path.exists():
            return {}
        with self._schema_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get_config_values(self) -> Dict[str, Any]:
        return asdict(self._config)

    def set_config_values(self, values: Dict[str, Any], persist: bool = True) -> None:
        if "interval_sec" in values:
            self._config.interval_sec = float(values["interval_sec"])
        if "flush_interval_sec" in values:
            self._config.flush_interval_sec = float(values["flush_interval_sec"])
        if "max_buffer_points" in values:
            self._config.max_buffer_points = float(values["max_buffer_points"])

        if persist:
            self._save_config_to_file()

    def reload_config_from_file(self) -> None:
        self._load_config_from_file()

    def _load_config_from_file(self) -> None:
        if not self._config_path.exists():
            return

        with self._config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self.set_config_values(data, persist=False)

    def _save_config_to_file(self) -> None:
        data = asdict(self._config)
        with self._config_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=True, allow_unicode=True)
