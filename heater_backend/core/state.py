# heater_backend/core/state.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional, Set, Union
import time


@dataclass(frozen=True)
class NumericValue:
    """Zwykły pomiar (temperatura, status, licznik...)."""
    value: float

    def as_number(self) -> float:
        return float(self.value)


@dataclass(frozen=True)
class ErrorRef:
    """Odwołanie do wpisu w katalogu błędów (tylko dla typu błędu, zwykle id=99)."""
    error_id: int

    def as_number(self) -> float:
        return float(self.error_id)


HeaterValue = Union[NumericValue, ErrorRef]


@dataclass(frozen=True)
class ValueDescriptor:
    """
    Opis typu wartości z protokołu pieca.
    Ładowany raz przy starcie z repozytorium.
    """
    id: int
    label: str
    unit: Optional[str] = None
    is_logged: bool = False


@dataclass(frozen=True)
class ErrorDescriptor:
    id: int
    text: str


@dataclass
class DataPoint:
    """
    Pojedynczy punkt danych.
    timestamp=None oznacza placeholder wstawiony przy seedowaniu store.
    """
    value: HeaterValue
    timestamp: Optional[float] = None


@dataclass
class CurrentValue:
    """
    Ostatnia znana wartość dla jednego typu wartości (jeden wpis na id).
    """
    value_type_id: int
    label: str
    unit: Optional[str]
    is_logged: bool
    latest: DataPoint


@dataclass
class DoorOpening:
    start: float
    end: Optional[float] = None

    def duration(self, now: float) -> float:
        end = self.end if self.end is not None else now
        return end - self.start


@dataclass
class HeaterReading:
    """
    Surowy odczyt przysłany przez czytnik pieca.

    raw_value    – wartość jako tekst (dla błędu: tekst błędu),
    scale_factor – mnożnik, przez który dzielimy surowy pomiar (0 => 1).
    """
    name: str
    raw_value: str
    unit: Optional[str]
    index: int
    scale_factor: float = 1.0
    timestamp: Optional[float] = None  # tylko dla importu historii


@dataclass
class ThresholdConfig:
    lower_threshold: float = 0.0
    recipients: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class HistoryPoint:
    value_type_id: int
    value: float
    timestamp: float


@dataclass
class StoredDataValue:
    """Wiersz z tabeli historii."""
    id: int
    value_type_id: int
    value: Optional[float]
    timestamp: float


@dataclass(frozen=True)
class LoggingState:
    value_type_id: int
    is_logged: bool


@dataclass
class DayOperatingHours:
    date: str          # YYYY-MM-DD
    hours: float
    min_hours: float
    max_hours: float


class JobHealth(Enum):
    OK = auto()
    WARNING = auto()
    ERROR = auto()
    DISABLED = auto()


@dataclass
class JobStatus:
    """
    Stan pojedynczego zadania okresowego widziany przez runner.
    """
    id: str
    health: JobHealth = JobHealth.OK
    last_error: Optional[str] = None
    last_tick_duration: float = 0.0
    last_updated: float = field(default_factory=time.time)


Snapshot = Dict[int, CurrentValue]
