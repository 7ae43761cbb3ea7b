"""
Tests for the expiry reconciler: write-back, scope, idempotence, per-record failures
"""
from datetime import datetime, timezone

from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

import reconciler
from access import Allow, AllowWithFilter, Deny
from conftest import make_device, make_pass
from models import Pass
from repository import PassRepository
from rules import as_utc

NOW = datetime(2024, 2, 1, 12, 0)


def _statuses(engine):
    with Session(engine) as s:
        return {p.id: p.status for p in s.exec(select(Pass)).all()}


def test_expires_only_active_passes_past_their_end(engine, session, device):
    past = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    current = make_pass(session, device, datetime(2024, 1, 20), datetime(2024, 2, 10))
    revoked = make_pass(session, device, datetime(2023, 1, 1), datetime(2023, 1, 10), status="revoked")

    report = reconciler.expire_passes(session, now=NOW)

    assert report.expired == 1
    assert [(d.id, d.success) for d in report.details] == [(past.id, True)]
    statuses = _statuses(engine)
    assert statuses[past.id] == "expired"
    assert statuses[current.id] == "active"
    assert statuses[revoked.id] == "revoked"


def test_dates_are_preserved(engine, session, device):
    p = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    reconciler.expire_passes(session, now=NOW)
    with Session(engine) as s:
        stored = s.get(Pass, p.id)
        assert (as_utc(stored.start_date), as_utc(stored.end_date)) == (
            datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 10, tzinfo=timezone.utc))


def test_second_run_is_a_no_op(session, device):
    make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    make_pass(session, device, datetime(2024, 1, 10), datetime(2024, 1, 20))

    first = reconciler.expire_passes(session, now=NOW)
    second = reconciler.expire_passes(session, now=NOW)

    assert first.expired == 2
    assert second.expired == 0
    assert second.details == []


def test_device_scope_leaves_other_devices_alone(engine, session, employee, device):
    other = make_device(session, employee, "SN-OTHER")
    mine = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    theirs = make_pass(session, other, datetime(2024, 1, 1), datetime(2024, 1, 10))

    report = reconciler.expire_passes(session, device_id=device.id, now=NOW)

    assert report.expired == 1
    statuses = _statuses(engine)
    assert statuses[mine.id] == "expired"
    assert statuses[theirs.id] == "active"


def test_scope_filter_limits_expiry_to_listed_devices(engine, session, employee, device):
    other = make_device(session, employee, "SN-OTHER")
    mine = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    theirs = make_pass(session, other, datetime(2024, 1, 1), datetime(2024, 1, 10))

    report = reconciler.expire_in_scope(session, AllowWithFilter(frozenset({device.id})), now=NOW)

    assert [d.id for d in report.details] == [mine.id]
    statuses = _statuses(engine)
    assert statuses[mine.id] == "expired"
    assert statuses[theirs.id] == "active"


def test_unrestricted_scope_expires_everything(engine, session, employee, device):
    other = make_device(session, employee, "SN-OTHER")
    make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    make_pass(session, other, datetime(2024, 1, 1), datetime(2024, 1, 10))

    assert reconciler.expire_in_scope(session, Allow(), now=NOW).expired == 2


def test_empty_or_denied_scope_expires_nothing(engine, session, device):
    p = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))

    assert reconciler.expire_in_scope(session, AllowWithFilter(frozenset()), now=NOW).details == []
    assert reconciler.expire_in_scope(session, Deny("no access"), now=NOW).details == []
    assert _statuses(engine)[p.id] == "active"

def test_record_failure_does_not_abort_batch(engine, session, device, monkeypatch):
    first = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 5))
    broken = make_pass(session, device, datetime(2024, 1, 5), datetime(2024, 1, 8))
    last = make_pass(session, device, datetime(2024, 1, 8), datetime(2024, 1, 10))

    original = PassRepository.expire_if_active

    def flaky(self, pass_id, now):
        if pass_id == broken.id:
            raise OperationalError("UPDATE pass", {}, Exception("database is locked"))
        return original(self, pass_id, now)

    monkeypatch.setattr(PassRepository, "expire_if_active", flaky)
    report = reconciler.expire_passes(session, now=NOW)

    outcome = {d.id: d for d in report.details}
    assert report.expired == 2
    assert outcome[first.id].success and outcome[last.id].success
    assert outcome[broken.id].success is False
    assert "database is locked" in outcome[broken.id].error
    statuses = _statuses(engine)
    assert statuses[first.id] == statuses[last.id] == "expired"
    assert statuses[broken.id] == "active"


def test_timeout_stops_attempting_records(engine, session, device):
    p = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))

    report = reconciler.expire_passes(session, now=NOW, timeout=-1)

    assert report.expired == 0
    assert report.details[0].id == p.id
    assert report.details[0].error == "timeout"
    assert _statuses(engine)[p.id] == "active"


def test_concurrently_expired_record_is_reported(session, device, monkeypatch):
    p = make_pass(session, device, datetime(2024, 1, 1), datetime(2024, 1, 10))
    monkeypatch.setattr(PassRepository, "expire_if_active", lambda self, pass_id, now: False)

    report = reconciler.expire_passes(session, now=NOW)

    assert report.expired == 0
    assert report.details[0].id == p.id
    assert report.details[0].error == "no longer active"


def test_sweeper_disabled_by_default():
    assert reconciler.start_sweeper(0) is None
