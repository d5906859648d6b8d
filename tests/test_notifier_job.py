import threading
import time

import pytest

from heater_backend.core.catalogs import ErrorCatalog
from heater_backend.core.state import ErrorDescriptor, HistoryPoint, ThresholdConfig
from heater_backend.jobs.notifier import NotifierConfig, NotifierJob

from conftest import FakeRepository


NOW = time.time()


@pytest.fixture
def repo():
    r = FakeRepository(errors=[ErrorDescriptor(id=4, text="Brak paliwa")])
    r.threshold = ThresholdConfig(lower_threshold=40.0, recipients={"a@example.com", "b@example.com"})
    return r


@pytest.fixture
def job(repo, mailer, tmp_path):
    errors = ErrorCatalog(repo)
    errors.load()
    return NotifierJob(
        repository=repo,
        mailer=mailer,
        error_catalog=errors,
        base_path=tmp_path,
        config=NotifierConfig(),
    )


def add(repo, vid, value, age=60.0):
    repo.history.append(HistoryPoint(value_type_id=vid, value=value, timestamp=NOW - age))


def subjects(mailer):
    return [s for s, _, _ in mailer.sent]


def test_no_recipients_sends_nothing(repo, job, mailer):
    repo.threshold = ThresholdConfig(lower_threshold=40.0, recipients=set())
    result = job.tick(now=NOW, stop_event=threading.Event())
    assert result.did_work is False
    assert mailer.sent == []


def test_missing_values_mail(repo, job, mailer):
    add(repo, 20, 60.0, age=3 * 3600)  # starsze niż okno 2h
    mails = job.build_mails(repo.get_latest_data_values(7200.0, now=NOW), 40.0)
    assert len(mails) == 1
    assert "Brak danych" in mails[0][0]


def test_error_mail_contains_error_text(repo, job):
    add(repo, 99, 4.0)
    add(repo, 20, 60.0)
    mails = job.build_mails(repo.get_latest_data_values(7200.0, now=NOW), 40.0)
    assert len(mails) == 1
    assert "Brak paliwa" in mails[0][1]


def test_zero_error_sends_nothing(repo, job):
    add(repo, 99, 0.0)
    add(repo, 20, 60.0)
    assert job.build_mails(repo.get_latest_data_values(7200.0, now=NOW), 40.0) == []


def test_low_temperature_mail_only_when_fire_out(repo, job):
    add(repo, 20, 35.0)
    add(repo, 21, 30.0)
    add(repo, 1, 3.0)
    assert job.build_mails(repo.get_latest_data_values(7200.0, now=NOW), 40.0) == []

    add(repo, 1, 5.0, age=30.0)
    mails = job.build_mails(repo.get_latest_data_values(7200.0, now=NOW), 40.0)
    assert len(mails) == 1
    subject, body = mails[0]
    assert "40" in subject
    assert "35" in body and "30" in body


def test_tick_sends_to_all_recipients(repo, job, mailer):
    add(repo, 20, 35.0, age=0.0)
    add(repo, 1, 5.0, age=0.0)

    result = job.tick(now=NOW, stop_event=threading.Event())

    assert result.did_work is True
    assert len(mailer.sent) == 1
    assert subjects(mailer)[0].startswith("Temperatura")
    assert mailer.sent[0][2] == ["a@example.com", "b@example.com"]
