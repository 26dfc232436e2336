import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import models  # noqa: F401
from app.config import get_settings
from app.database import Base
from app.models.recipient import Recipient, SwitchRecipient
from app.models.switch import Message, Switch
from app.models.user import User
from app.services.deadlines import to_iso
from app.services.dispatcher import mark_alert_sent, mark_reminder_sent
from app.services.email_transport import DeliveryError, EmailTransport
from app.services.evaluator import MISSING_TRANSPORT_ERROR, run_evaluation
from app.services.selector import evaluate_reminder, evaluate_switch

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
DUE_AT = T0 + timedelta(days=7)


class FakeTransport(EmailTransport):
    """Records sends; raises DeliveryError for addresses in ``failing``."""

    def __init__(self, failing=(), configured=True):
        self.failing = set(failing)
        self.configured = configured
        self.sent = []
        self.attempts = []

    def is_configured(self):
        return self.configured

    def send(self, to, subject, text_body, html_body, sender_name=None):
        self.attempts.append(to)
        if to in self.failing:
            raise DeliveryError("Inactive recipient", 406)
        self.sent.append({"to": to, "subject": subject, "text_body": text_body, "html_body": html_body})
        return f"msg-{len(self.sent)}"


def _settings(**overrides):
    values = {"complete_on_trigger": False, "owner_reminders_enabled": False}
    values.update(overrides)
    return get_settings().model_copy(update=values)


def _session():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)()


def _seed(
    session,
    recipients=(("Ada Lovelace", "ada@example.com"),),
    subject="For {recipient_name}",
    body="Hello {recipient_first_name}, full: {recipient_name}",
    with_message=True,
    interval_days=7,
    grace_days=0,
    user_settings=None,
):
    user = session.query(User).filter_by(id="user-1").first()
    if user is None:
        user = User(id="user-1", email="owner@example.com", settings=json.dumps(user_settings or {}))
        session.add(user)
        session.flush()

    switch = Switch(
        user_id=user.id,
        name="Travel",
        status="active",
        interval_days=interval_days,
        grace_days=grace_days,
        created_at=to_iso(T0),
    )
    session.add(switch)
    session.flush()

    if with_message:
        session.add(Message(switch_id=switch.id, subject=subject, body=body))
    for name, email in recipients:
        recipient = Recipient(user_id=user.id, name=name, email=email)
        session.add(recipient)
        session.flush()
        session.add(SwitchRecipient(switch_id=switch.id, recipient_id=recipient.id))

    session.commit()
    return switch.id


def test_due_switch_sends_rendered_message_and_marks_alerted():
    session = _session()
    switch_id = _seed(session)
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings())

    assert summary.ok
    assert (summary.checked, summary.due, summary.emails_sent, summary.emails_failed) == (1, 1, 1, 0)
    assert transport.sent[0]["to"] == "ada@example.com"
    assert transport.sent[0]["subject"] == "For Ada Lovelace"
    assert transport.sent[0]["text_body"].startswith("Hello Ada, full: Ada Lovelace")

    switch = session.get(Switch, switch_id)
    assert switch.last_alert_sent_at == to_iso(DUE_AT)
    assert switch.status == "active"


def test_not_due_one_second_before_deadline():
    session = _session()
    _seed(session)
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=DUE_AT - timedelta(seconds=1), settings=_settings())

    assert summary.due == 0
    assert transport.attempts == []


def test_second_run_sends_nothing_more():
    session = _session()
    _seed(session)
    transport = FakeTransport()

    first = run_evaluation(session, transport, now=DUE_AT, settings=_settings())
    second = run_evaluation(session, transport, now=DUE_AT + timedelta(minutes=5), settings=_settings())

    assert first.emails_sent == 1
    assert second.checked == 1
    assert second.due == 0
    assert second.emails_sent == 0
    assert len(transport.sent) == 1


def test_trigger_completes_switch_when_configured():
    session = _session()
    switch_id = _seed(session)
    transport = FakeTransport()

    run_evaluation(session, transport, now=DUE_AT, settings=_settings(complete_on_trigger=True))
    second = run_evaluation(session, transport, now=DUE_AT + timedelta(days=1), settings=_settings(complete_on_trigger=True))

    assert session.get(Switch, switch_id).status == "completed"
    assert second.checked == 0
    assert len(transport.sent) == 1


def test_total_failure_leaves_switch_eligible_for_retry():
    session = _session()
    switch_id = _seed(session, recipients=(("Ada Lovelace", "ada@example.com"), ("Alan Turing", "alan@example.com")))
    failing = FakeTransport(failing={"ada@example.com", "alan@example.com"})

    first = run_evaluation(session, failing, now=DUE_AT, settings=_settings(complete_on_trigger=True))

    assert first.ok
    assert first.emails_sent == 0
    assert first.emails_failed == 2
    assert failing.attempts == ["ada@example.com", "alan@example.com"]
    switch = session.get(Switch, switch_id)
    assert switch.last_alert_sent_at is None
    assert switch.status == "active"

    recovered = FakeTransport()
    second = run_evaluation(session, recovered, now=DUE_AT + timedelta(minutes=5), settings=_settings())

    assert second.due == 1
    assert second.emails_sent == 2


def test_partial_success_commits_and_does_not_refire():
    # Accepted tradeoff: the two failed recipients are never retried.
    session = _session()
    switch_id = _seed(
        session,
        recipients=(
            ("Ada Lovelace", "ada@example.com"),
            ("Alan Turing", "alan@example.com"),
            ("Grace Hopper", "grace@example.com"),
        ),
    )
    transport = FakeTransport(failing={"ada@example.com", "grace@example.com"})

    first = run_evaluation(session, transport, now=DUE_AT, settings=_settings())
    second = run_evaluation(session, transport, now=DUE_AT + timedelta(minutes=5), settings=_settings())

    assert (first.emails_sent, first.emails_failed) == (1, 2)
    assert {f.to for f in first.failures} == {"ada@example.com", "grace@example.com"}
    assert first.failures[0].switch_id == switch_id
    assert first.failures[0].code == 406
    assert session.get(Switch, switch_id).last_alert_sent_at == to_iso(DUE_AT)
    assert second.due == 0
    assert len(transport.attempts) == 3


def test_failure_in_one_switch_does_not_block_others():
    session = _session()
    _seed(session, recipients=(("Ada Lovelace", "ada@example.com"),))
    _seed(session, recipients=(("Alan Turing", "alan@example.com"),))
    transport = FakeTransport(failing={"ada@example.com"})

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings())

    assert summary.due == 2
    assert summary.emails_sent == 1
    assert summary.emails_failed == 1


def test_huge_interval_switch_does_not_abort_the_pass():
    session = _session()
    _seed(session, recipients=(("Alan Turing", "alan@example.com"),), interval_days=5_000_000)
    _seed(session)
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings(owner_reminders_enabled=True))

    assert summary.ok
    assert (summary.checked, summary.due, summary.emails_sent) == (2, 1, 1)
    assert summary.reminders_sent == 0
    assert [s["to"] for s in transport.sent] == ["ada@example.com"]


def test_zero_recipients_is_skipped_without_error():
    session = _session()
    switch_id = _seed(session, recipients=())
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings())

    assert summary.ok
    assert summary.due == 1
    assert transport.attempts == []
    assert summary.failures == []
    assert session.get(Switch, switch_id).last_alert_sent_at is None


def test_missing_or_empty_message_is_skipped_without_error():
    session = _session()
    _seed(session, with_message=False)
    _seed(session, body="   ", recipients=(("Alan Turing", "alan@example.com"),))
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings())

    assert summary.ok
    assert summary.due == 2
    assert transport.attempts == []


def test_missing_transport_config_fails_before_any_work():
    session = _session()
    _seed(session)
    transport = FakeTransport(configured=False)

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings())

    assert not summary.ok
    assert summary.error == MISSING_TRANSPORT_ERROR
    assert transport.attempts == []


def test_store_failure_while_loading_switches_fails_the_pass():
    engine = create_engine("sqlite://")  # no tables
    session = sessionmaker(bind=engine)()

    summary = run_evaluation(session, FakeTransport(), now=DUE_AT, settings=_settings())

    assert not summary.ok
    assert "switches" in summary.error


def test_failure_sample_is_capped():
    session = _session()
    recipients = tuple((f"R {i}", f"r{i}@example.com") for i in range(5))
    _seed(session, recipients=recipients)
    transport = FakeTransport(failing={email for _, email in recipients})

    summary = run_evaluation(session, transport, now=DUE_AT, settings=_settings(failure_sample_limit=3))

    assert summary.emails_failed == 5
    assert len(summary.failures) == 3


def test_conditional_mark_loses_to_concurrent_run():
    session = _session()
    switch_id = _seed(session)
    due = evaluate_switch(session.get(Switch, switch_id), DUE_AT)
    assert due is not None

    other_run = to_iso(DUE_AT + timedelta(seconds=30))
    session.query(Switch).filter(Switch.id == switch_id).update(
        {"last_alert_sent_at": other_run}, synchronize_session=False
    )
    session.commit()

    assert mark_alert_sent(session, due, DUE_AT + timedelta(minutes=1)) is False
    assert session.get(Switch, switch_id).last_alert_sent_at == other_run


def test_owner_reminders_sent_once_per_tier():
    session = _session()
    switch_id = _seed(session, interval_days=10)
    transport = FakeTransport()
    settings = _settings(owner_reminders_enabled=True)

    halfway = run_evaluation(session, transport, now=T0 + timedelta(days=6), settings=settings)
    repeat = run_evaluation(session, transport, now=T0 + timedelta(days=7), settings=settings)
    urgent = run_evaluation(session, transport, now=T0 + timedelta(days=9, hours=12), settings=settings)

    assert (halfway.reminders_50, halfway.reminders_sent) == (1, 1)
    assert repeat.reminders_sent == 0
    assert (urgent.reminders_90, urgent.reminders_sent) == (1, 1)
    assert [s["to"] for s in transport.sent] == ["owner@example.com", "owner@example.com"]
    assert transport.sent[1]["subject"] == 'Urgent: "Travel" triggers soon'

    switch = session.get(Switch, switch_id)
    assert switch.reminder_90_sent_at == to_iso(T0 + timedelta(days=9, hours=12))
    assert switch.last_alert_sent_at is None


def test_owner_reminders_respect_user_preference():
    session = _session()
    _seed(session, interval_days=10, user_settings={"reminder_enabled": False})
    transport = FakeTransport()

    summary = run_evaluation(session, transport, now=T0 + timedelta(days=6), settings=_settings(owner_reminders_enabled=True))

    assert summary.reminders_50 == 0
    assert transport.attempts == []


def test_failed_owner_reminder_is_retried():
    session = _session()
    switch_id = _seed(session, interval_days=10)
    settings = _settings(owner_reminders_enabled=True)

    failed = run_evaluation(session, FakeTransport(failing={"owner@example.com"}), now=T0 + timedelta(days=6), settings=settings)
    assert failed.reminders_sent == 0
    assert failed.emails_failed == 1
    assert session.get(Switch, switch_id).reminder_50_sent_at is None

    retried = run_evaluation(session, FakeTransport(), now=T0 + timedelta(days=6, minutes=5), settings=settings)
    assert retried.reminders_sent == 1


def test_reminder_marker_lost_to_concurrent_run_is_logged(caplog):
    session = _session()
    switch_id = _seed(session, interval_days=10)
    now = T0 + timedelta(days=6)
    candidate = evaluate_reminder(session.get(Switch, switch_id), now)
    assert candidate is not None and candidate.tier == 50

    other_run = to_iso(now + timedelta(seconds=30))
    session.query(Switch).filter(Switch.id == switch_id).update(
        {"reminder_50_sent_at": other_run}, synchronize_session=False
    )
    session.commit()

    with caplog.at_level(logging.INFO, logger="app.services.dispatcher"):
        assert mark_reminder_sent(session, candidate, now + timedelta(minutes=1)) is False

    assert "already marked reminded" in caplog.text
    assert session.get(Switch, switch_id).reminder_50_sent_at == other_run
