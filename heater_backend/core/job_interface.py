# heater_backend/core/job_interface.py
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from typing_extensions import Protocol


@dataclass
class JobTickResult:
    """
    Wynik pojedynczego uruchomienia zadania okresowego.
    """
    did_work: bool = False
    message: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)


class JobInterface(Protocol):
    @property
    def id(self) -> str:
        ...

    @property
    def interval_sec(self) -> float:
        ...

    def tick(self, now: float, stop_event: threading.Event) -> JobTickResult:
        ...

    def get_config_schema(self) -> Dict[str, Any]:
        ...

    def get_config_values(self) -> Dict[str, Any]:
        ...

    def set_config_values(self, values: Dict[str, Any], persist: bool = True) -> None:
        ...

    def reload_config_from_file(self) -> None:
        ...
