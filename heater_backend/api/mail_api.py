# heater_backend/api/mail_api.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..core.state import ThresholdConfig
from ..data.repository import HeaterRepository

import logging
logger = logging.getLogger(__name__)


class MailConfigurationIn(BaseModel):
    lower_threshold: float
    mails: List[str] = []


def create_mail_router(repository: HeaterRepository) -> APIRouter:
    """
    Konfiguracja powiadomień mailowych:
      GET /mail/configuration
      PUT /mail/configuration
    """
    router = APIRouter(prefix="/mail", tags=["mail"])

    @router.get("/configuration")
    def get_configuration():
        cfg = repository.load_threshold_config()
        return {
            "lower_threshold": cfg.lower_threshold,
            "mails": sorted(cfg.recipients),
        }

    @router.put("/configuration")
    def put_configuration(body: MailConfigurationIn):
        mails = {m.strip() for m in body.mails if m and m.strip()}
        invalid = sorted(m for m in mails if "@" not in m)
        if invalid:
            raise HTTPException(status_code=400, detail=f"Invalid mail address(es): {', '.join(invalid)}")

        repository.save_threshold_config(ThresholdConfig(lower_threshold=body.lower_threshold, recipients=mails))
        logger.info("Notifier configuration saved: threshold=%s, %d recipient(s)", body.lower_threshold, len(mails))
        return {"lower_threshold": body.lower_threshold, "mails": sorted(mails)}

    return router
