# heater_backend/core/job_runner.py
from __future__ import annotations

import copy
import threading
import time
from typing import Dict, List, Optional

from heater_backend.core.clock import Clock, RealClock
from heater_backend.core.job_interface import JobInterface
from heater_backend.core.state import JobHealth, JobStatus

import logging
logger = logging.getLogger(__name__)


class JobRunner:
    """
    Pętla zadań okresowych (zapis historii, powiadomienia mailowe).
    - każde zadanie ma własny interwał (interval_sec, czytany przy każdym kroku),
    - pierwsze uruchomienie zaraz po starcie,
    - wyjątek zadania jest logowany i ustawia status ERROR;
      nie zatrzymuje innych zadań ani ingestion.
    """

    def __init__(self, jobs: List[JobInterface], *, clock: Clock | None = None) -> None:
        self._clock = clock or RealClock()
        self._jobs: Dict[str, JobInterface] = {j.id: j for j in jobs}
        self._lock = threading.Lock()
        self._statuses: Dict[str, JobStatus] = {jid: JobStatus(id=jid) for jid in self._jobs}
        self._last_run: Dict[str, Optional[float]] = {jid: None for jid in self._jobs}

    @property
    def job_ids(self) -> List[str]:
        return list(self._jobs)

    def get_job(self, job_id: str) -> JobInterface:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(f"Unknown job '{job_id}'")
        return job

    def statuses(self) -> Dict[str, JobStatus]:
        with self._lock:
            return copy.deepcopy(self._statuses)

    def seconds_until_next(self) -> float:
        now = self._clock.time()
        waits = []
        for jid, job in self._jobs.items():
            last = self._last_run[jid]
            if last is None:
                return 0.0
            waits.append(max(0.0, last + float(job.interval_sec) - now))
        return min(waits) if waits else 60.0

    def step(self, stop_event: threading.Event) -> None:
        """
        Jeden krok: uruchamia zadania, którym minął interwał.
        """
        for jid, job in self._jobs.items():
            if stop_event.is_set():
                return

            now = self._clock.time()
            last = self._last_run[jid]
            if last is not None and (now - last) < float(job.interval_sec):
                continue

            self._last_run[jid] = now
            self.run_job(jid, stop_event)

    def run_job(self, job_id: str, stop_event: threading.Event) -> JobStatus:
        job = self.get_job(job_id)
        now = self._clock.time()
        start = time.time()

        with self._lock:
            status = copy.deepcopy(self._statuses[job_id])

        try:
            result = job.tick(now=now, stop_event=stop_event)
            duration = time.time() - start

            status.health = JobHealth.OK
            status.last_error = None
            if result.message:
                logger.info("Job %s: %s", job_id, result.message)

        except Exception as exc:  # pylint: disable=broad-except
            duration = time.time() - start
            logger.exception("Job %s raised an exception", job_id)
            status.health = JobHealth.ERROR
            status.last_error = f"{type(exc).__name__}: {exc}"

        status.last_tick_duration = duration
        status.last_updated = now

        with self._lock:
            self._statuses[job_id] = status
            return copy.deepcopy(status)

    def run(self, stop_event: threading.Event, max_wait: float = 5.0) -> None:
        """
        Pętla wątku tła. stop_event jest jednocześnie tokenem anulowania
        przekazywanym do zadań.
        """
        while not stop_event.is_set():
            try:
                self.step(stop_event)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Job loop step failed")

            remaining = min(max_wait, self.seconds_until_next())
            # wait zamiast time.sleep -> szybka reakcja na sygnał stop
            if stop_event.wait(timeout=max(0.05, remaining)):
                break

    def reload_job_config_from_file(self, job_id: str) -> None:
        job = self.get_job(job_id)
        try:
            job.reload_config_from_file()
        except Exception:
            logger.exception("Error reloading config for job %s", job_id)
            raise
        logger.info("Config for job '%s' reloaded from file", job_id)
