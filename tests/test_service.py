import logging
import threading

import pytest

from heater_backend.core.errors import CatalogLoadError, CatalogNotReadyError
from heater_backend.core.service import HeaterDataService
from heater_backend.core.state import (
    ErrorDescriptor,
    HeaterReading,
    HistoryPoint,
    LoggingState,
    NumericValue,
)

from conftest import FakeRepository


def test_catalog_load_failure_is_fatal(clock):
    repo = FakeRepository()
    repo.fail_value_load = True
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)

    with pytest.raises(CatalogLoadError):
        svc.wait_until_ready()
    with pytest.raises(CatalogLoadError):
        svc.submit_readings([HeaterReading(name="t", raw_value="1", unit=None, index=2)])
    assert svc.is_ready is False


def test_submit_waits_for_catalogs(clock):
    repo = FakeRepository()
    repo.value_load_gate = threading.Event()
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)

    with pytest.raises(CatalogNotReadyError):
        svc.wait_until_ready(timeout=0.05)

    result = {}

    def submit():
        result["changed"] = svc.submit_readings(
            [HeaterReading(name="t", raw_value="50", unit=None, index=2)]
        )

    t = threading.Thread(target=submit)
    t.start()
    t.join(timeout=0.1)
    assert t.is_alive()  # czeka na katalogi

    repo.value_load_gate.set()
    t.join(timeout=5.0)
    assert result["changed"] is True
    # wpis ma etykietę z katalogu, więc nie był obsłużony jako nieznany
    assert svc.get_current_snapshot()[2].label == "Temperatura kotła"


def test_store_seeded_after_load(service):
    snap = service.get_current_snapshot()
    assert set(snap) == set(service.value_descriptions())
    assert all(cur.latest.timestamp is None for cur in snap.values())


def test_set_logging_state_updates_catalog_and_store(service, repo):
    assert service.get_current_snapshot()[21].is_logged is False

    reloaded = service.set_logging_state([LoggingState(value_type_id=21, is_logged=True)])

    assert [d.id for d in reloaded] == [21]
    assert service.value_catalog.get(21).is_logged is True
    assert service.get_current_snapshot()[21].is_logged is True
    assert repo.descriptors[21].is_logged is True


def test_set_logging_state_unknown_id_raises(service):
    with pytest.raises(KeyError):
        service.set_logging_state([LoggingState(value_type_id=4242, is_logged=True)])


def test_get_history_groups_rows_and_resolves_errors(clock, caplog):
    repo = FakeRepository(errors=[ErrorDescriptor(id=5, text="Przegrzanie")])
    repo.history = [
        HistoryPoint(value_type_id=20, value=60.0, timestamp=100.0),
        HistoryPoint(value_type_id=20, value=61.0, timestamp=200.0),
        HistoryPoint(value_type_id=99, value=5.0, timestamp=150.0),
        HistoryPoint(value_type_id=777, value=1.0, timestamp=150.0),
        HistoryPoint(value_type_id=777, value=2.0, timestamp=160.0),
    ]
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)
    caplog.set_level(logging.WARNING, logger="heater_backend.core.service")

    history = svc.get_history(0.0, 1000.0)

    assert history[20].points == [(100.0, 60.0), (200.0, 61.0)]
    assert history[99].points == [(150.0, "Przegrzanie")]
    assert history[1].points == []
    assert 777 not in history
    assert len([r for r in caplog.records if "777" in r.getMessage()]) == 1


def test_import_history_keeps_latest_reading_per_chunk(service, repo):
    readings = [
        HeaterReading(name="t", raw_value="10", unit=None, index=20, timestamp=0.0),
        HeaterReading(name="t", raw_value="11", unit=None, index=20, timestamp=500.0),
        HeaterReading(name="t", raw_value="12", unit=None, index=20, timestamp=950.0),
        HeaterReading(name="t", raw_value="x", unit=None, index=21, timestamp=10.0),
        HeaterReading(name="s", raw_value="30", unit=None, index=2, timestamp=100.0, scale_factor=10),
    ]

    stored = service.import_history(readings, resolution_s=900.0)

    assert stored == 3
    assert sorted((p.value_type_id, p.value, p.timestamp) for p in repo.history) == [
        (2, 3.0, 100.0),
        (20, 11.0, 500.0),
        (20, 12.0, 950.0),
    ]
    # import nie dotyka bieżącego stanu
    assert service.get_current_snapshot()[20].latest.value == NumericValue(0.0)


def test_import_history_requires_timestamps(service):
    with pytest.raises(ValueError):
        service.import_history([HeaterReading(name="t", raw_value="1", unit=None, index=20)])
