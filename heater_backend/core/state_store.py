from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from heater_backend.core.state import (
    CurrentValue,
    DataPoint,
    ErrorRef,
    HistoryPoint,
    NumericValue,
    Snapshot,
    ValueDescriptor,
)


class CurrentStateStore:
    """
    Ostatnia wartość dla każdego typu wartości.

    Zapis: compare_and_set pod lockiem (jeden pisarz naraz).
    Odczyt: snapshot() zwraca głęboką kopię – wołający może ją dowolnie
    serializować bez trzymania locka.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._values: Dict[int, CurrentValue] = {}

    @contextmanager
    def locked(self) -> Iterator[Dict[int, CurrentValue]]:
        with self._lock:
            yield self._values

    def snapshot(self) -> Snapshot:
        with self._lock:
            return copy.deepcopy(self._values)

    def get(self, value_type_id: int) -> Optional[CurrentValue]:
        with self._lock:
            cur = self._values.get(value_type_id)
            return copy.deepcopy(cur) if cur is not None else None

    def seed(self, descriptors: Iterable[ValueDescriptor], error_value_type_id: int) -> None:
        """
        Wstawia placeholder (0, bez timestampu) dla każdego znanego typu wartości.
        Istniejących wpisów nie rusza.
        """
        with self._lock:
            for d in descriptors:
                if d.id in self._values:
                    continue
                placeholder = ErrorRef(0) if d.id == error_value_type_id else NumericValue(0.0)
                self._values[d.id] = CurrentValue(
                    value_type_id=d.id,
                    label=d.label,
                    unit=d.unit,
                    is_logged=d.is_logged,
                    latest=DataPoint(value=placeholder, timestamp=None),
                )

    def compare_and_set(
        self,
        value_type_id: int,
        point: DataPoint,
        *,
        label: str = "",
        unit: Optional[str] = None,
        is_logged: bool = False,
    ) -> bool:
        """
        Atomowo porównuje wartość z ostatnią zapisaną.
        Inna (albo brak wpisu) -> zapis i True; taka sama -> nic nie zmieniamy, False.

        label/unit/is_logged są używane tylko przy tworzeniu nowego wpisu.
        """
        with self._lock:
            cur = self._values.get(value_type_id)
            if cur is None:
                self._values[value_type_id] = CurrentValue(
                    value_type_id=value_type_id,
                    label=label,
                    unit=unit,
                    is_logged=is_logged,
                    latest=DataPoint(value=point.value, timestamp=point.timestamp),
                )
                return True

            if cur.latest.value == point.value:
                return False

            cur.latest = DataPoint(value=point.value, timestamp=point.timestamp)
            return True

    def put(self, current: CurrentValue) -> None:
        """Bezwarunkowy zapis (wartości pochodne, np. czas otwarcia drzwiczek)."""
        with self._lock:
            self._values[current.value_type_id] = copy.deepcopy(current)

    def set_logged(self, value_type_id: int, is_logged: bool) -> bool:
        with self._lock:
            cur = self._values.get(value_type_id)
            if cur is None:
                return False
            cur.is_logged = bool(is_logged)
            return True

    def loggable_points(self) -> List[HistoryPoint]:
        """
        Punkty do zapisu w historii: po jednym na typ z is_logged=True.
        Placeholdery (bez timestampu) pomijamy.
        """
        with self._lock:
            return [
                HistoryPoint(
                    value_type_id=vid,
                    value=cur.latest.value.as_number(),
                    timestamp=cur.latest.timestamp,
                )
                for vid, cur in sorted(self._values.items())
                if cur.is_logged and cur.latest.timestamp is not None
            ]
