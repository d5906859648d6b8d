# heater_backend/data/repository.py
from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List, Optional, Protocol

from heater_backend.core.state import (
    DayOperatingHours,
    ErrorDescriptor,
    HistoryPoint,
    LoggingState,
    StoredDataValue,
    ThresholdConfig,
    ValueDescriptor,
)


class HeaterRepository(Protocol):
    """
    Interfejs trwałego magazynu danych pieca.
    Implementuje go repozytorium SQL (SQLAlchemy) oraz fake w testach.

    Każde wywołanie to osobna, atomowa operacja – rdzeń nie potrzebuje
    transakcji obejmujących kilka wywołań.
    """

    def load_value_descriptors(self) -> List[ValueDescriptor]:
        """
        Zwraca wszystkie opisy typów wartości.
        Rzuca wyjątek, gdy nie ma połączenia z bazą.
        """
        ...

    def load_error_descriptors(self) -> List[ErrorDescriptor]:
        ...

    def insert_error(self, text: str) -> int:
        """
        Dodaje nowy wpis do listy błędów i zwraca nadane id (autoincrement).
        """
        ...

    def bulk_insert_history(self, points: Iterable[HistoryPoint]) -> bool:
        """
        Zapisuje punkty historii jednym insertem.
        Zwraca True, jeśli coś zapisano.
        """
        ...

    def load_threshold_config(self) -> ThresholdConfig:
        ...

    # ---------- operacje dodatkowe (API / powiadomienia) ----------

    def save_threshold_config(self, config: ThresholdConfig) -> None:
        ...

    def set_logging_state(self, states: Iterable[LoggingState]) -> None:
        ...

    def get_data_values(self, from_ts: float, to_ts: float) -> List[StoredDataValue]:
        ...

    def get_latest_data_values(
        self, max_age_s: float = 7200.0, now: Optional[float] = None
    ) -> Dict[int, StoredDataValue]:
        """Najnowsza wartość każdego typu nie starsza niż max_age_s (względem now)."""
        ...

    def get_operating_hours(self, from_date: date, to_date: date) -> List[DayOperatingHours]:
        ...
