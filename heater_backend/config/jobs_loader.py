# heater_backend/config/jobs_loader.py
from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional
import inspect
import logging

import yaml  # pip install pyyaml

from ..core.job_interface import JobInterface


logger = logging.getLogger(__name__)
CONFIG_PATH = Path(__file__).with_name("jobs.yaml")


@dataclass
class JobDescriptor:
    id: str
    path: str
    enabled: bool = True


def load_job_descriptors(path: Optional[Path] = None) -> List[JobDescriptor]:
    """
    Czyta jobs.yaml i zwraca listę descriptorów w KOLEJNOŚCI z pliku.
    """
    return _load_yaml_config(path or CONFIG_PATH)


def _load_yaml_config(path: Path) -> List[JobDescriptor]:
    if not path.exists():
        raise FileNotFoundError(f"Jobs config file not found: {path}")

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return [
        JobDescriptor(
            id=item["id"],
            path=item["path"],
            enabled=item.get("enabled", True),
        )
        for item in data.get("jobs", [])
    ]


def _load_job_class(path: str):
    """
    Ładuje klasę zadania na podstawie ścieżki:
    "heater_backend.jobs.history:HistoryJob"
    """
    module_path, class_name = path.split(":")
    module = import_module(module_path)
    return getattr(module, class_name)


def _ctor_kwargs(cls, deps: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Wybiera z deps te zależności, które przyjmuje __init__ klasy.
    Gdy __init__ ma **kwargs, dostaje wszystkie.
    Brak wymaganego parametru -> TypeError z czytelnym komunikatem.
    """
    sig = inspect.signature(cls.__init__)
    params = [p for name, p in sig.parameters.items() if name != "self"]

    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params):
        return dict(deps)

    kwargs: Dict[str, Any] = {}
    for p in params:
        if p.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        if p.name in deps:
            kwargs[p.name] = deps[p.name]
        elif p.default is inspect.Parameter.empty:
            raise TypeError(f"{cls.__name__} requires dependency '{p.name}' which is not available")
    return kwargs


def load_jobs(deps: Mapping[str, Any], *, path: Optional[Path] = None) -> List[JobInterface]:
    """
    Czyta jobs.yaml i tworzy instancje włączonych zadań,
    wstrzykując zależności (store, repository, mailer, ...) po nazwach
    parametrów konstruktora.
    """
    jobs: List[JobInterface] = []

    for desc in load_job_descriptors(path):
        if not desc.enabled:
            logger.info("Job '%s' disabled in config", desc.id)
            continue

        cls = _load_job_class(desc.path)
        job: JobInterface = cls(**_ctor_kwargs(cls, deps))

        # lekka walidacja spójności
        if getattr(job, "id", None) != desc.id:
            raise ValueError(
                f"Job id mismatch: config id={desc.id}, class id={getattr(job, 'id', None)}"
            )
        jobs.append(job)

    logger.info("Loaded jobs: %s", ", ".join(j.id for j in jobs) or "-")
    return jobs
