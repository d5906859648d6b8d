# tests/conftest.py
from __future__ import annotations

import threading
import time
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

import pytest

from heater_backend.core.clock import SimClock
from heater_backend.core.service import HeaterDataService
from heater_backend.core.state import (
    DayOperatingHours,
    ErrorDescriptor,
    HistoryPoint,
    LoggingState,
    StoredDataValue,
    ThresholdConfig,
    ValueDescriptor,
)


DEFAULT_DESCRIPTORS = [
    ValueDescriptor(id=1, label="Status", unit=None, is_logged=True),
    ValueDescriptor(id=2, label="Temperatura kotła", unit="°C", is_logged=True),
    ValueDescriptor(id=20, label="Bufor góra", unit="°C", is_logged=True),
    ValueDescriptor(id=21, label="Bufor dół", unit="°C", is_logged=False),
    ValueDescriptor(id=30, label="Godziny pracy", unit="h", is_logged=True),
    ValueDescriptor(id=99, label="Błąd", unit=None, is_logged=True),
    ValueDescriptor(id=200, label="Czas otwarcia drzwiczek", unit="s", is_logged=False),
]


class FakeRepository:
    """Repozytorium w pamięci z przełącznikami awarii."""

    def __init__(
        self,
        descriptors: Optional[List[ValueDescriptor]] = None,
        errors: Optional[List[ErrorDescriptor]] = None,
    ) -> None:
        self.descriptors: Dict[int, ValueDescriptor] = {
            d.id: d for d in (DEFAULT_DESCRIPTORS if descriptors is None else descriptors)
        }
        self.errors: Dict[int, str] = {e.id: e.text for e in (errors or [])}
        self.history: List[HistoryPoint] = []
        self.threshold = ThresholdConfig()

        self.fail_value_load = False
        self.fail_bulk_insert = False
        self.fail_insert_error = False
        self.value_load_gate: Optional[threading.Event] = None
        self.insert_error_delay_s = 0.0

        self.insert_error_calls = 0
        self.bulk_insert_calls = 0
        self._lock = threading.Lock()

    # ---------- katalogi ----------

    def load_value_descriptors(self) -> List[ValueDescriptor]:
        if self.value_load_gate is not None:
            self.value_load_gate.wait(timeout=5.0)
        if self.fail_value_load:
            raise ConnectionError("database unavailable")
        return list(self.descriptors.values())

    def load_error_descriptors(self) -> List[ErrorDescriptor]:
        return [ErrorDescriptor(id=i, text=t) for i, t in sorted(self.errors.items())]

    def insert_error(self, text: str) -> int:
        if self.insert_error_delay_s:
            time.sleep(self.insert_error_delay_s)
        with self._lock:
            self.insert_error_calls += 1
            if self.fail_insert_error:
                raise ConnectionError("database unavailable")
            new_id = max(self.errors, default=0) + 1
            self.errors[new_id] = text
            return new_id

    def set_logging_state(self, states: Iterable[LoggingState]) -> None:
        for st in states:
            d = self.descriptors.get(st.value_type_id)
            if d is None:
                raise KeyError(f"Unknown value type {st.value_type_id}")
            self.descriptors[d.id] = ValueDescriptor(id=d.id, label=d.label, unit=d.unit, is_logged=st.is_logged)

    # ---------- historia ----------

    def bulk_insert_history(self, points: Iterable[HistoryPoint]) -> bool:
        self.bulk_insert_calls += 1
        if self.fail_bulk_insert:
            raise ConnectionError("insert failed")
        points = list(points)
        self.history.extend(points)
        return bool(points)

    def get_data_values(self, from_ts: float, to_ts: float) -> List[StoredDataValue]:
        return [
            StoredDataValue(id=i + 1, value_type_id=p.value_type_id, value=p.value, timestamp=p.timestamp)
            for i, p in enumerate(self.history)
            if from_ts <= p.timestamp <= to_ts
        ]

    def get_latest_data_values(self, max_age_s: float = 7200.0, now: Optional[float] = None) -> Dict[int, StoredDataValue]:
        now = time.time() if now is None else now
        out: Dict[int, StoredDataValue] = {}
        for row in self.get_data_values(now - max_age_s, now):
            prev = out.get(row.value_type_id)
            if prev is None or prev.timestamp <= row.timestamp:
                out[row.value_type_id] = row
        return out

    def get_operating_hours(self, from_date: date, to_date: date) -> List[DayOperatingHours]:
        per_day: Dict[date, List[float]] = defaultdict(list)
        for p in self.history:
            day = datetime.fromtimestamp(p.timestamp).date()
            if p.value_type_id == 30 and from_date <= day <= to_date:
                per_day[day].append(p.value)
        return [
            DayOperatingHours(date=d.isoformat(), hours=max(v) - min(v), min_hours=min(v), max_hours=max(v))
            for d, v in sorted(per_day.items())
        ]

    # ---------- powiadomienia ----------

    def load_threshold_config(self) -> ThresholdConfig:
        return ThresholdConfig(self.threshold.lower_threshold, set(self.threshold.recipients))

    def save_threshold_config(self, config: ThresholdConfig) -> None:
        self.threshold = ThresholdConfig(config.lower_threshold, set(config.recipients))


class FakeMailer:
    def __init__(self) -> None:
        self.sent: List[tuple] = []

    def send(self, subject: str, body: str, recipients: Iterable[str]) -> None:
        self.sent.append((subject, body, sorted(recipients)))


@pytest.fixture
def repo():
    return FakeRepository()


@pytest.fixture
def clock():
    return SimClock(start_ts=1_700_000_000.0)


@pytest.fixture
def service(repo, clock):
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)
    svc.wait_until_ready()
    return svc


@pytest.fixture
def mailer():
    return FakeMailer()
