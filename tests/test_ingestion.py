import logging

import pytest

from heater_backend.core.errors import MissingValueTypeError
from heater_backend.core.ingestion import parse_numeric
from heater_backend.core.service import HeaterDataService
from heater_backend.core.state import ErrorDescriptor, ErrorRef, HeaterReading, NumericValue

from conftest import DEFAULT_DESCRIPTORS, FakeRepository


def reading(index, value, name="", unit=None, scale=1.0):
    return HeaterReading(name=name or f"v{index}", raw_value=value, unit=unit, index=index, scale_factor=scale)


@pytest.fixture
def published(service):
    got = []
    service.subscribe(got.append)
    return got


# ---------- parsowanie ----------

def test_parse_numeric_scale_and_whitespace():
    assert parse_numeric("555", 10) == pytest.approx(55.5)
    assert parse_numeric(" 42 ", 1) == 42.0
    assert parse_numeric("7", 0) == 7.0
    with pytest.raises(ValueError):
        parse_numeric("abc", 1)


# ---------- scenariusze drzwiczek ----------

def test_door_open_close_burn_sequence(service, clock, published):
    # A: otwarcie drzwiczek
    t0 = clock.time()
    assert service.submit_readings([reading(1, "6")]) is True
    tracker = service.engine.door_tracker
    assert [(o.start, o.end) for o in tracker.openings] == [(t0, None)]

    snap = published[-1]
    assert snap[1].latest.value == NumericValue(6.0)
    assert snap[200].latest.value.as_number() == pytest.approx(0.0)
    assert snap[200].latest.timestamp == t0

    # B: zamknięcie po 30 s
    clock.advance(30.0)
    t1 = clock.time()
    assert service.submit_readings([reading(1, "35")]) is True
    assert tracker.openings[-1].end == t1
    assert service.get_current_snapshot()[200].latest.value.as_number() == pytest.approx(t1 - t0)

    # C: palenie czyści listę otwarć
    clock.advance(60.0)
    assert service.submit_readings([reading(1, "3")]) is True
    assert tracker.openings == ()
    assert service.get_current_snapshot()[200].latest.value.as_number() == 0.0
    assert len(published) == 3


def test_repeated_door_open_always_publishes(service, clock, published):
    service.submit_readings([reading(1, "6")])
    clock.advance(10.0)
    # ta sama wartość statusu, ale czas otwarcia rośnie
    assert service.submit_readings([reading(1, "6")]) is True
    assert service.get_current_snapshot()[200].latest.value.as_number() == pytest.approx(10.0)
    assert len(published) == 2


def test_missing_door_value_type_fails_fast(clock):
    repo = FakeRepository(descriptors=[d for d in DEFAULT_DESCRIPTORS if d.id != 200])
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)
    svc.wait_until_ready()

    with pytest.raises(MissingValueTypeError):
        svc.submit_readings([reading(1, "6")])

    # inne odczyty działają normalnie
    assert svc.submit_readings([reading(2, "50")]) is True


def test_missing_door_value_type_leaves_batch_unapplied(clock):
    repo = FakeRepository(descriptors=[d for d in DEFAULT_DESCRIPTORS if d.id != 200])
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)
    svc.wait_until_ready()
    got = []
    svc.subscribe(got.append)

    with pytest.raises(MissingValueTypeError):
        svc.submit_readings([reading(2, "50"), reading(1, "6"), reading(20, "33")])

    snap = svc.get_current_snapshot()
    assert snap[2].latest.timestamp is None
    assert snap[20].latest.timestamp is None
    assert got == []


# ---------- błędy pieca ----------

def test_unseen_error_text_gets_new_id_and_is_idempotent(clock):
    repo = FakeRepository(errors=[ErrorDescriptor(id=i, text=f"E{i}0") for i in range(1, 7)])
    svc = HeaterDataService(repo, clock=clock, ready_timeout_s=5.0)
    svc.wait_until_ready()

    assert svc.submit_readings([reading(99, "E4")]) is True
    assert repo.insert_error_calls == 1
    assert svc.get_current_snapshot()[99].latest.value == ErrorRef(7)

    assert svc.submit_readings([reading(99, "E4")]) is False
    assert repo.insert_error_calls == 1


def test_failed_error_insert_skips_only_that_reading(service, repo, published, caplog):
    caplog.set_level(logging.ERROR, logger="heater_backend.core.ingestion")
    repo.fail_insert_error = True

    changed = service.submit_readings([reading(2, "50"), reading(99, "E4"), reading(20, "33")])

    assert changed is True
    snap = service.get_current_snapshot()
    assert snap[2].latest.value == NumericValue(50.0)
    assert snap[20].latest.value == NumericValue(33.0)
    assert snap[99].latest.value == ErrorRef(0)
    assert len(published) == 1
    assert published[0][20].latest.value == NumericValue(33.0)
    assert "Skipping reading" in caplog.text

    # po powrocie bazy ten sam błąd zostaje zarejestrowany
    repo.fail_insert_error = False
    assert service.submit_readings([reading(99, "E4")]) is True
    assert service.error_catalog.find("E4") is not None


def test_error_text_is_trimmed(service, repo):
    service.submit_readings([reading(99, "  Brak paliwa ")])
    service.submit_readings([reading(99, "Brak paliwa")])
    assert list(repo.errors.values()) == ["Brak paliwa"]


# ---------- wartości ----------

def test_unknown_value_type_stored_with_single_warning(service, caplog):
    caplog.set_level(logging.WARNING, logger="heater_backend.core.ingestion")

    assert service.submit_readings([reading(42, "1", name="Nowa", unit="V")]) is True
    assert service.submit_readings([reading(42, "2", name="Nowa", unit="V")]) is True

    cur = service.get_current_snapshot()[42]
    assert (cur.label, cur.unit, cur.is_logged) == ("Nowa", "V", False)
    assert cur.latest.value == NumericValue(2.0)

    warnings = [r for r in caplog.records if r.levelno == logging.WARNING and "42" in r.getMessage()]
    assert len(warnings) == 1


def test_resubmitting_same_batch_is_idempotent(service, published):
    batch = [reading(1, "5"), reading(2, "555", scale=10), reading(20, "61")]

    assert service.submit_readings(batch) is True
    assert service.submit_readings(batch) is False
    assert len(published) == 1
    assert service.get_current_snapshot()[2].latest.value == NumericValue(55.5)


def test_malformed_value_defaults_to_zero_and_batch_continues(service, caplog):
    caplog.set_level(logging.ERROR, logger="heater_backend.core.ingestion")

    service.submit_readings([reading(2, "40")])
    assert service.submit_readings([reading(2, "n/a"), reading(20, "70")]) is True

    snap = service.get_current_snapshot()
    assert snap[2].latest.value == NumericValue(0.0)
    assert snap[20].latest.value == NumericValue(70.0)
    assert any("n/a" in r.getMessage() for r in caplog.records)


def test_one_publish_per_changed_batch(service, published):
    service.submit_readings([reading(2, "1"), reading(20, "2"), reading(21, "3")])
    assert len(published) == 1
    assert {2, 20, 21} <= set(published[0])


def test_failing_subscriber_does_not_break_ingestion(service, published):
    def broken(_snapshot):
        raise RuntimeError("boom")

    service.subscribe(broken)
    assert service.submit_readings([reading(2, "12")]) is True
    assert len(published) == 1
