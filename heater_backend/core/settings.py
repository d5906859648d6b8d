# heater_backend/core/settings.py
from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import logging
import os

import yaml  # pip install pyyaml

from heater_backend.core.state import ValueDescriptor


logger = logging.getLogger(__name__)

SETTINGS_PATH = Path(__file__).resolve().parent.parent / "config" / "settings.yaml"
SEED_PATH = SETTINGS_PATH.with_name("value_descriptions.yaml")
ENV_PREFIX = "HEATER_BACKEND_"


@dataclass
class Settings:
    """
    Ustawienia aplikacji: settings.yaml + nadpisania ze zmiennych środowiskowych
    HEATER_BACKEND_<KLUCZ> (np. HEATER_BACKEND_DATABASE_URL).
    """
    database_url: str = "sqlite:///heater.db"

    status_value_type_id: int = 1
    error_value_type_id: int = 99
    door_openings_value_type_id: int = 200
    operating_hours_value_type_id: int = 30

    catalog_ready_timeout_s: float = 60.0

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_sender: str = "heater@localhost"
    smtp_use_tls: bool = True

    client_min_log_level: str = "Information"
    log_level: str = "INFO"

    seed_value_descriptions: bool = True


def _env_truthy(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _coerce(name: str, typ: Any, value: Any) -> Any:
    typ_name = typ if isinstance(typ, str) else getattr(typ, "__name__", str(typ))
    try:
        if typ_name == "bool":
            return _env_truthy(value) if isinstance(value, str) else bool(value)
        if typ_name == "int":
            return int(value)
        if typ_name == "float":
            return float(value)
        return str(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for setting '{name}': {value!r}")


def load_settings(
    path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    path = path or SETTINGS_PATH
    env = os.environ if env is None else env

    raw: Dict[str, Any] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.warning("Settings file %s not found, using defaults", path)

    known = {f.name: f for f in fields(Settings)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))

    values: Dict[str, Any] = {}
    for name, f in known.items():
        if name in raw and raw[name] is not None:
            values[name] = _coerce(name, f.type, raw[name])

        env_value = env.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = _coerce(name, f.type, env_value)

    return Settings(**values)


def load_seed_value_descriptors(path: Optional[Path] = None) -> List[ValueDescriptor]:
    """Domyślne typy wartości dla pustej bazy (config/value_descriptions.yaml)."""
    path = path or SEED_PATH
    if not path.exists():
        return []

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return [
        ValueDescriptor(
            id=int(item["id"]),
            label=str(item["label"]),
            unit=item.get("unit"),
            is_logged=bool(item.get("is_logged", False)),
        )
        for item in data.get("value_descriptions", [])
    ]
