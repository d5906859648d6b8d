# heater_backend/main.py
from __future__ import annotations

import asyncio
import faulthandler
import threading
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.heater_data_api import create_heater_data_router
from .api.hub import HeaterDataHub, create_hub_router
from .api.jobs_api import create_jobs_router
from .api.log_api import create_log_router, parse_client_level
from .api.mail_api import create_mail_router
from .config.jobs_loader import load_jobs
from .core.config_store import ConfigStore
from .core.ingestion import ReservedIds
from .core.job_runner import JobRunner
from .core.service import HeaterDataService
from .core.settings import load_seed_value_descriptors, load_settings
from .data.sql_repository import SqlHeaterRepository
from .mail.mailer import Mailer

import logging

settings = load_settings()

faulthandler.enable()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# --- REPOZYTORIUM I SERWIS ---

repository = SqlHeaterRepository(
    settings.database_url,
    operating_hours_value_type_id=settings.operating_hours_value_type_id,
)

if settings.seed_value_descriptions:
    added = repository.seed_value_descriptors(load_seed_value_descriptors())
    if added:
        logger.info("Seeded %d default value descriptions", added)

reserved = ReservedIds(
    status=settings.status_value_type_id,
    error=settings.error_value_type_id,
    door_openings=settings.door_openings_value_type_id,
)

# katalogi ładują się w tle od tej chwili
service = HeaterDataService(
    repository,
    reserved=reserved,
    ready_timeout_s=settings.catalog_ready_timeout_s,
)


def _error_text(error_id: int):
    d = service.error_catalog.get(error_id)
    return d.text if d is not None else None


hub = HeaterDataHub(error_text=_error_text)
service.subscribe(hub.publish)

mailer = Mailer(
    host=settings.smtp_host,
    port=settings.smtp_port,
    user=settings.smtp_user,
    password=settings.smtp_password,
    sender=settings.smtp_sender,
    use_tls=settings.smtp_use_tls,
)

# --- ZADANIA OKRESOWE ---

jobs = load_jobs(
    {
        "store": service.store,
        "repository": repository,
        "mailer": mailer,
        "error_catalog": service.error_catalog,
        "reserved": reserved,
    }
)
job_runner = JobRunner(jobs)

BACKEND_ROOT = Path(__file__).resolve().parent
config_store = ConfigStore(
    BACKEND_ROOT / "jobs",
    job_ids_in_order=job_runner.job_ids,
)

jobs_stop_event = threading.Event()
jobs_thread: threading.Thread | None = None


def _history_resolution_s() -> float:
    try:
        return float(job_runner.get_job("history").interval_sec)
    except KeyError:
        return 900.0


# --- FASTAPI / HTTP API ---

app = FastAPI(
    title="Serwer danych pieca",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup() -> None:
    global jobs_thread

    loop = asyncio.get_running_loop()
    hub.attach_loop(loop)

    # bez katalogów serwer nie ma sensu – błąd ładowania przerywa start
    await loop.run_in_executor(None, service.wait_until_ready)
    logger.info("Catalogs ready, starting periodic jobs")

    jobs_stop_event.clear()
    jobs_thread = threading.Thread(target=job_runner.run, args=(jobs_stop_event,), daemon=True, name="jobs_loop")
    jobs_thread.start()


@app.on_event("shutdown")
async def on_shutdown() -> None:
    logger.info("Shutdown requested: stopping jobs...")

    jobs_stop_event.set()
    if jobs_thread is not None:
        jobs_thread.join(timeout=5.0)
        logger.info("[JOBS] alive=%s", jobs_thread.is_alive())

    repository.dispose()
    logger.info("Shutdown handler finished.")


# --- ROUTERY ---

app.include_router(create_heater_data_router(service, history_resolution_s=_history_resolution_s), prefix="/api")
app.include_router(create_hub_router(hub, service.get_current_snapshot), prefix="/api")
app.include_router(create_mail_router(repository), prefix="/api")
app.include_router(create_log_router(parse_client_level(settings.client_min_log_level)), prefix="/api")
app.include_router(create_jobs_router(config_store, job_runner), prefix="/api")
