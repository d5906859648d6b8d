# heater_backend/api/hub.py
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Optional, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from .serialization import ErrorTextLookup, serialize_snapshot
from ..core.state import Snapshot


logger = logging.getLogger(__name__)

CURRENT_HEATER_DATA = "CurrentHeaterData"


class HeaterDataHub:
    """
    Kanał live-update: każdy nowy snapshot z ingestion trafia do wszystkich
    podłączonych klientów WebSocket.

    publish() jest wołane z wątku ingestion (threadpool), więc wysyłka
    jest przekazywana do pętli asyncio aplikacji.
    """

    def __init__(self, error_text: ErrorTextLookup | None = None) -> None:
        self._error_text = error_text
        self._lock = threading.Lock()
        self._clients: Set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def message(self, snapshot: Snapshot) -> Dict[str, Any]:
        return {"type": CURRENT_HEATER_DATA, "data": serialize_snapshot(snapshot, self._error_text)}

    # ---------- subskrybent Notifier ----------

    def publish(self, snapshot: Snapshot) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or self.client_count == 0:
            return

        payload = self.message(snapshot)
        asyncio.run_coroutine_threadsafe(self.broadcast(payload), loop)

    # ---------- klienci ----------

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._clients.add(websocket)
        logger.info("Hub client connected (%d total)", self.client_count)

    def disconnect(self, websocket: WebSocket) -> None:
        with self._lock:
            self._clients.discard(websocket)
        logger.info("Hub client disconnected (%d left)", self.client_count)

    async def broadcast(self, payload: Dict[str, Any]) -> int:
        with self._lock:
            clients = list(self._clients)

        sent = 0
        for ws in clients:
            try:
                await ws.send_json(payload)
                sent += 1
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Dropping hub client after send failure: %s", exc)
                self.disconnect(ws)
        return sent


def create_hub_router(hub: HeaterDataHub, get_snapshot: Callable[[], Snapshot]) -> APIRouter:
    router = APIRouter(prefix="/hub", tags=["hub"])

    @router.websocket("/heater-data")
    async def heater_data_ws(websocket: WebSocket):
        """
        Po podłączeniu klient dostaje bieżący snapshot, potem każdą zmianę.
        Wiadomości od klienta są ignorowane.
        """
        hub.attach_loop(asyncio.get_running_loop())
        await hub.connect(websocket)
        try:
            await websocket.send_json(hub.message(get_snapshot()))
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            hub.disconnect(websocket)

    return router
