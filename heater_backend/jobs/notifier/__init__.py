from __future__ import annotations

from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import logging
import threading

import yaml  # pip install pyyaml

from heater_backend.core.catalogs import ErrorCatalog
from heater_backend.core.ingestion import ReservedIds
from heater_backend.core.job_interface import JobInterface, JobTickResult
from heater_backend.core.state import StoredDataValue
from heater_backend.data.repository import HeaterRepository
from heater_backend.mail.mailer import MailSender


logger = logging.getLogger(__name__)


@dataclass
class NotifierConfig:
    """
    interval_sec      – co ile sekund sprawdzamy ostatnie wartości.
    max_age_sec       – okno "świeżych" danych; brak danych w oknie = mail o braku danych.
    upper_buffer_id   – typ wartości: temperatura bufora u góry.
    lower_buffer_id   – typ wartości: temperatura bufora na dole.
    fire_out_status   – kod statusu pieca "ogień wygasł".
    """
    interval_sec: float = 3600.0
    max_age_sec: float = 7200.0
    upper_buffer_id: float = 20
    lower_buffer_id: float = 21
    fire_out_status: float = 5


class NotifierJob(JobInterface):
    """
    Okresowe sprawdzenie ostatnich zapisanych wartości i powiadomienia mailowe:
    brak danych, błąd pieca, zbyt niska temperatura bufora przy wygasłym ogniu.
    """

    def __init__(
        self,
        *,
        repository: HeaterRepository,
        mailer: MailSender,
        error_catalog: ErrorCatalog | None = None,
        reserved: ReservedIds | None = None,
        base_path: Path | None = None,
        config: NotifierConfig | None = None,
    ) -> None:
        self._repository = repository
        self._mailer = mailer
        self._error_catalog = error_catalog
        self._reserved = reserved or ReservedIds()

        self._base_path = base_path or Path(__file__).resolve().parent
        self._schema_path = self._base_path / "schema.yaml"
        self._config_path = self._base_path / "values.yaml"

        self._config = config or NotifierConfig()
        if config is None:
            self._load_config_from_file()

    @property
    def id(self) -> str:
        return "notifier"

    @property
    def interval_sec(self) -> float:
        return float(self._config.interval_sec)

    def tick(self, now: float, stop_event: threading.Event) -> JobTickResult:
        threshold = self._repository.load_threshold_config()
        recipients = sorted(threshold.recipients)
        if not recipients:
            logger.info("No notification recipients configured, skipping check")
            return JobTickResult(did_work=False)

        latest = self._repository.get_latest_data_values(max_age_s=float(self._config.max_age_sec), now=now)
        mails = self.build_mails(latest, threshold.lower_threshold)

        sent: List[str] = []
        for subject, body in mails:
            if stop_event.is_set():
                break
            self._mailer.send(subject, body, recipients)
            sent.append(subject)

        return JobTickResult(
            did_work=bool(sent),
            message=f"sent {len(sent)} notification mail(s)" if sent else None,
            data={"sent": sent},
        )

    def build_mails(
        self,
        latest: Dict[int, StoredDataValue],
        lower_threshold: float,
    ) -> List[Tuple[str, str]]:
        """Lista (temat, treść) maili do wysłania dla podanych ostatnich wartości."""
        hours = float(self._config.max_age_sec) / 3600.0

        if not latest:
            return [(
                f"Brak danych z pieca od {hours:g} godzin",
                f"Od ponad {hours:g} godzin nie otrzymano żadnych danych z pieca.",
            )]

        mails: List[Tuple[str, str]] = []

        error_value = self._value(latest, self._reserved.error)
        if error_value:
            error_id = int(error_value)
            text = self._error_text(error_id)
            mails.append((
                "Błąd pieca",
                f"Piec zgłasza błąd: {text} (błąd nr {error_id})",
            ))

        upper = self._value(latest, int(self._config.upper_buffer_id)) or 0.0
        lower = self._value(latest, int(self._config.lower_buffer_id)) or 0.0
        status = self._value(latest, self._reserved.status) or 0.0

        if upper < lower_threshold and int(status) == int(self._config.fire_out_status):
            mails.append((
                f"Temperatura poniżej progu {lower_threshold:g}°C",
                "\n".join([
                    f"Temperatura spadła poniżej progu {lower_threshold:g}°C.",
                    "",
                    "Temperatury:",
                    f"Bufor góra: {upper:g}°C",
                    f"Bufor dół: {lower:g}°C",
                ]),
            ))

        return mails

    @staticmethod
    def _value(latest: Dict[int, StoredDataValue], value_type_id: int) -> Optional[float]:
        row = latest.get(value_type_id)
        return row.value if row is not None else None

    def _error_text(self, error_id: int) -> str:
        if self._error_catalog is None:
            return f"#{error_id}"
        desc = self._error_catalog.get(error_id)
        return desc.text if desc is not None else f"#{error_id}"

    # ---------- CONFIG (schema + values) ----------

    def get_config_schema(self) -> Dict[str, Any]:
        if not self._schema_path.exists():
            return {}
        with self._schema_path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get_config_values(self) -> Dict[str, Any]:
        return asdict(self._config)

    def set_config_values(self, values: Dict[str, Any], persist: bool = True) -> None:
        for key in asdict(self._config):
            if key in values:
                setattr(self._config, key, float(values[key]))

        if persist:
            self._save_config_to_file()

    def reload_config_from_file(self) -> None:
        self._load_config_from_file()

    def _load_config_from_file(self) -> None:
        if not self._config_path.exists():
            return

        with self._config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self.set_config_values(data, persist=False)

    def _save_config_to_file(self) -> None:
        data = asdict(self._config)
        with self._config_path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=True, allow_unicode=True)
