# heater_backend/api/jobs_api.py
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Body

from ..core.config_store import ConfigStore
from ..core.job_runner import JobRunner


def create_jobs_router(config_store: ConfigStore, runner: JobRunner) -> APIRouter:
    """
    Router z endpointami:
      GET  /jobs
      GET  /jobs/{job_id}/schema
      GET  /jobs/{job_id}/config
      PUT  /jobs/{job_id}/config
    """
    router = APIRouter(prefix="/jobs", tags=["jobs"])

    @router.get("")
    def list_jobs():
        """
        Zadania okresowe wraz ze stanem ostatniego uruchomienia.
        """
        statuses = runner.statuses()
        out = []
        for info in config_store.list_jobs():
            st = statuses.get(info.id)
            out.append(
                {
                    "id": info.id,
                    "name": info.name,
                    "description": info.description,
                    "health": st.health.name if st else None,
                    "last_error": st.last_error if st else None,
                    "last_tick_duration": st.last_tick_duration if st else None,
                    "last_updated": st.last_updated if st else None,
                }
            )
        return out

    @router.get("/{job_id}/schema")
    def get_job_schema(job_id: str):
        try:
            return config_store.get_schema(job_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown job '{job_id}'")

    @router.get("/{job_id}/config")
    def get_job_config(job_id: str):
        try:
            return config_store.get_values(job_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown job '{job_id}'")
        except ValueError as exc:
            raise HTTPException(status_code=500, detail=str(exc))

    @router.put("/{job_id}/config")
    def set_job_config(
        job_id: str,
        values: dict = Body(..., description="Mapa klucz->wartość zgodna z schema"),
    ):
        """
        Waliduje i zapisuje values.yaml, potem zadanie przeładowuje konfigurację.
        """
        try:
            validated = config_store.set_values(job_id, values)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown job '{job_id}'")
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))

        try:
            runner.reload_job_config_from_file(job_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown job '{job_id}'")
        except Exception as exc:  # pylint: disable=broad-except
            raise HTTPException(status_code=500, detail=f"Config saved but reload failed: {exc}")

        return validated

    return router
