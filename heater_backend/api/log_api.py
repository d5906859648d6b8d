# heater_backend/api/log_api.py
from __future__ import annotations

from enum import IntEnum
from typing import Any, List, Optional
import logging

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel


client_logger = logging.getLogger("heater_backend.client")


class ClientLogLevel(IntEnum):
    """Poziomy logów klienta (GUI). Wiadomość przyjmujemy, gdy poziom <= minimum."""
    Off = 0
    Fatal = 1
    Error = 3
    Warning = 7
    Information = 15
    Debug = 31
    Verbose = 63


PY_LEVELS = {
    ClientLogLevel.Fatal: logging.CRITICAL,
    ClientLogLevel.Error: logging.ERROR,
    ClientLogLevel.Warning: logging.WARNING,
    ClientLogLevel.Information: logging.INFO,
    ClientLogLevel.Debug: logging.DEBUG,
    ClientLogLevel.Verbose: logging.DEBUG,
}


def parse_client_level(value: Any) -> ClientLogLevel:
    """Przyjmuje nazwę ("Information") albo wartość liczbową (15)."""
    if isinstance(value, ClientLogLevel):
        return value
    if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
        try:
            return ClientLogLevel[value.strip().capitalize()]
        except KeyError:
            raise ValueError(f"Unknown client log level {value!r}")
    try:
        return ClientLogLevel(int(value))
    except (TypeError, ValueError):
        raise ValueError(f"Unknown client log level {value!r}")


class LogMessageOptions(BaseModel):
    error: Optional[str] = None
    parameters: List[Any] = []


class MinimumLevelIn(BaseModel):
    level: str


def create_log_router(minimum_level: ClientLogLevel = ClientLogLevel.Information) -> APIRouter:
    """
    Odbiór logów z GUI:
      GET  /log/minimum-level
      PUT  /log/minimum-level
      POST /log/message
    """
    router = APIRouter(prefix="/log", tags=["log"])
    state = {"minimum": minimum_level}

    def _level_json(level: ClientLogLevel) -> dict:
        return {"level": int(level), "name": level.name}

    @router.get("/minimum-level")
    def get_minimum_level():
        return _level_json(state["minimum"])

    @router.put("/minimum-level")
    def set_minimum_level(body: MinimumLevelIn):
        try:
            state["minimum"] = parse_client_level(body.level)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return _level_json(state["minimum"])

    @router.post("/message", status_code=204)
    def post_message(
        client_identification: str = Query(...),
        client_log_level: str = Query(...),
        message: str = Query(...),
        options: Optional[LogMessageOptions] = None,
    ):
        try:
            level = parse_client_level(client_log_level)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        minimum = state["minimum"]
        if level > minimum:
            return JSONResponse(
                status_code=412,
                content={
                    "message": "Log message level is above the minimum level",
                    "minimum_log_level": int(minimum),
                },
            )

        py_level = PY_LEVELS.get(level)
        if py_level is not None:
            options = options or LogMessageOptions()
            text = f"<{client_identification}> {message}"
            if options.error:
                text += f" ({options.error})"
            if options.parameters:
                text += f" {options.parameters!r}"
            client_logger.log(py_level, "%s", text)

        return None

    return router
