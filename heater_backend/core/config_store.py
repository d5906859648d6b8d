from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List
import yaml


@dataclass
class JobInfo:
    id: str
    name: str | None = None
    description: str | None = None


class ConfigStore:
    """
    Konfiguracja zadań okresowych: jobs/<job_id>/schema.yaml + values.yaml.
    """

    def __init__(self, base_dir: Path, job_ids_in_order: List[str]):
        self.jobs_root = base_dir
        self._job_ids_in_order = list(job_ids_in_order)

    # ---------- Ścieżki pomocnicze ----------

    def _schema_path(self, job_id: str) -> Path:
        return self.jobs_root / job_id / "schema.yaml"

    def _values_path(self, job_id: str) -> Path:
        return self.jobs_root / job_id / "values.yaml"

    # ---------- API publiczne ----------

    def list_jobs(self) -> List[JobInfo]:
        jobs: List[JobInfo] = []

        for jid in self._job_ids_in_order:
            schema_path = self._schema_path(jid)
            data: Dict[str, Any] = {}
            if schema_path.exists():
                with schema_path.open("r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}

            jobs.append(JobInfo(id=jid, name=data.get("name"), description=data.get("description")))

        return jobs

    def get_schema(self, job_id: str) -> Dict[str, Any]:
        if job_id not in self._job_ids_in_order:
            raise KeyError(f"Unknown job '{job_id}'")
        path = self._schema_path(job_id)
        if not path.exists():
            raise KeyError(f"Unknown job '{job_id}' (schema not found: {path})")
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get_values(self, job_id: str) -> Dict[str, Any]:
        """
        Scalone values: czego brak w values.yaml, bierzemy jako default ze schemy.
        """
        fields = self.get_schema(job_id).get("fields", [])

        vpath = self._values_path(job_id)
        raw_values: Dict[str, Any] = {}
        if vpath.exists():
            with vpath.open("r", encoding="utf-8") as f:
                raw_values = yaml.safe_load(f) or {}

        result: Dict[str, Any] = {}
        for field in fields:
            key = field["key"]
            value = raw_values.get(key, field.get("default"))
            if value is None:
                raise ValueError(f"Brak wartości dla pola '{key}' i brak domyślnej.")
            result[key] = self._validate_single_value(field, value)

        return result

    def set_values(self, job_id: str, new_values: Dict[str, Any]) -> Dict[str, Any]:
        """
        Waliduje new_values wg schemy i zapisuje values.yaml.
        Klucze spoza schemy są ignorowane, brakujące biorą wartość bieżącą albo default.
        """
        fields = self.get_schema(job_id).get("fields", [])
        current = self.get_values(job_id)

        validated: Dict[str, Any] = {}
        for field in fields:
            key = field["key"]
            raw_value = new_values.get(key, current.get(key, field.get("default")))
            if raw_value is None:
                raise ValueError(f"Brak wartości dla pola '{key}' i brak domyślnej.")
            validated[key] = self._validate_single_value(field, raw_value)

        vpath = self._values_path(job_id)
        vpath.parent.mkdir(parents=True, exist_ok=True)
        with vpath.open("w", encoding="utf-8") as f:
            yaml.safe_dump(validated, f, allow_unicode=True, sort_keys=True)

        return validated

    # ---------- Walidacja pojedynczej wartości ----------

    def _validate_single_value(self, field: Dict[str, Any], value: Any) -> Any:
        ftype = field.get("type")
        validator = _VALIDATORS.get(ftype)
        if validator is None:
            raise ValueError(f"Unsupported field type '{ftype}' for '{field['key']}'")
        return validator(field, value)


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _as_number(field: Dict[str, Any], value: Any) -> float:
    key = field["key"]
    try:
        if isinstance(value, bool):
            raise TypeError(value)
        num = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Field '{key}' expects a number, got {value!r}")

    lo, hi = field.get("min"), field.get("max")
    if (lo is not None and num < lo) or (hi is not None and num > hi):
        raise ValueError(f"Value {num} for '{key}' is outside [{lo}, {hi}]")
    return num


def _as_text(field: Dict[str, Any], value: Any) -> str:
    options = field.get("options")
    s = str(value)
    if options is not None and s not in options:
        raise ValueError(f"Field '{field['key']}' accepts only {options}, got {value!r}")
    return s


def _as_bool(field: Dict[str, Any], value: Any) -> bool:
    if isinstance(value, (bool, int, float)):
        return bool(value)
    token = str(value).strip().lower()
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    raise ValueError(f"Field '{field['key']}' expects a bool, got {value!r}")


_VALIDATORS: Dict[str, Callable[[Dict[str, Any], Any], Any]] = {
    "number": _as_number,
    "text": _as_text,
    "bool": _as_bool,
}
