# heater_backend/api/heater_data_api.py
from __future__ import annotations

from datetime import date, timedelta
from typing import Callable, List, Optional
import logging
import time

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Response
from pydantic import BaseModel

from .serialization import serialize_descriptor, serialize_snapshot
from ..core.errors import CatalogLoadError, CatalogNotReadyError
from ..core.service import HeaterDataService
from ..core.state import HeaterReading, LoggingState


logger = logging.getLogger(__name__)


class HeaterValueIn(BaseModel):
    """Jeden odczyt z pieca (wartość surowa jako tekst)."""
    name: str = ""
    value: str = ""
    unit: Optional[str] = None
    index: int
    scale_factor: float = 1.0


class HistoricHeaterValueIn(HeaterValueIn):
    timestamp: float


class LoggingStateIn(BaseModel):
    value_type_id: int
    is_logged: bool


def _to_reading(v: HeaterValueIn, timestamp: Optional[float] = None) -> HeaterReading:
    return HeaterReading(
        name=v.name,
        raw_value=v.value,
        unit=v.unit,
        index=v.index,
        scale_factor=v.scale_factor,
        timestamp=timestamp,
    )


def create_heater_data_router(
    service: HeaterDataService,
    history_resolution_s: Optional[Callable[[], float]] = None,
) -> APIRouter:
    """
    Router z endpointami:
      GET  /heater-data/latest
      PUT  /heater-data/latest
      GET  /heater-data/data
      POST /heater-data/history
      GET  /heater-data/value-descriptions
      GET  /heater-data/error-descriptions
      GET  /heater-data/operating-hours
      PUT  /heater-data/logging-state
    """
    router = APIRouter(prefix="/heater-data", tags=["heater-data"])

    def _error_text(error_id: int) -> Optional[str]:
        d = service.error_catalog.get(error_id)
        return d.text if d is not None else None

    def _ensure_ready() -> None:
        try:
            service.wait_until_ready()
        except (CatalogLoadError, CatalogNotReadyError) as exc:
            raise HTTPException(status_code=503, detail=str(exc))

    @router.get("/latest")
    def get_latest():
        """
        Bieżący snapshot: typ wartości -> ostatni punkt.
        """
        return serialize_snapshot(service.get_current_snapshot(), _error_text)

    @router.put("/latest", status_code=204)
    def put_latest(values: List[HeaterValueIn], background_tasks: BackgroundTasks):
        """
        Przyjmuje paczkę odczytów; przetwarzanie idzie w tle po odpowiedzi.
        """
        _ensure_ready()
        readings = [_to_reading(v) for v in values]
        background_tasks.add_task(service.submit_readings, readings)
        return Response(status_code=204)

    @router.get("/data")
    def get_data(
        from_ts: Optional[float] = Query(None, description="Początek zakresu (epoch s), domyślnie 24h temu"),
        to_ts: Optional[float] = Query(None, description="Koniec zakresu (epoch s), domyślnie teraz"),
    ):
        to_ts = time.time() if to_ts is None else to_ts
        from_ts = to_ts - 24 * 3600.0 if from_ts is None else from_ts
        if from_ts > to_ts:
            raise HTTPException(status_code=400, detail="from_ts must be <= to_ts")

        _ensure_ready()
        history = service.get_history(from_ts, to_ts)
        return {
            str(vid): {
                "value_type_id": s.value_type_id,
                "label": s.label,
                "unit": s.unit,
                "is_logged": s.is_logged,
                "data": [{"timestamp": ts, "value": v} for ts, v in s.points],
            }
            for vid, s in sorted(history.items())
        }

    @router.post("/history")
    def import_history(values: List[HistoricHeaterValueIn]):
        """
        Import historycznych odczytów (np. z pamięci pieca) w rozdzielczości historii.
        """
        readings = [_to_reading(v, timestamp=v.timestamp) for v in values]
        resolution = float(history_resolution_s()) if history_resolution_s is not None else 900.0
        try:
            stored = service.import_history(readings, resolution_s=resolution)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return {"stored": stored}

    @router.get("/value-descriptions")
    def get_value_descriptions():
        _ensure_ready()
        return {str(vid): serialize_descriptor(d) for vid, d in sorted(service.value_descriptions().items())}

    @router.get("/error-descriptions")
    def get_error_descriptions():
        _ensure_ready()
        return {str(eid): d.text for eid, d in sorted(service.error_descriptions().items())}

    @router.get("/operating-hours")
    def get_operating_hours(
        from_date: Optional[date] = Query(None),
        to_date: Optional[date] = Query(None),
    ):
        to_date = to_date or date.today()
        from_date = from_date or (to_date - timedelta(days=30))
        if from_date > to_date:
            raise HTTPException(status_code=400, detail="from_date must be <= to_date")

        return [
            {"date": d.date, "hours": d.hours, "min_hours": d.min_hours, "max_hours": d.max_hours}
            for d in service.repository.get_operating_hours(from_date, to_date)
        ]

    @router.put("/logging-state")
    def put_logging_state(states: List[LoggingStateIn]):
        _ensure_ready()
        try:
            reloaded = service.set_logging_state(
                LoggingState(value_type_id=s.value_type_id, is_logged=s.is_logged) for s in states
            )
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Unknown value type")
        return [serialize_descriptor(d) for d in reloaded]

    return router
