"""Delivery of rendered notifications and per-cycle bookkeeping."""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.switch import Switch
from app.services.composer import RenderedNotification
from app.services.deadlines import to_iso
from app.services.email_transport import DeliveryError, EmailTransport
from app.services.selector import DueSwitch, ReminderCandidate

logger = logging.getLogger(__name__)


@dataclass
class FailureRecord:
    """One failed delivery, as reported in the run summary."""

    switch_id: str
    to: str
    error: str
    code: str | int | None = None


@dataclass
class DispatchStats:
    """Counters accumulated across a pass."""

    emails_sent: int = 0
    emails_failed: int = 0
    reminders_sent: int = 0
    failures: list[FailureRecord] = field(default_factory=list)

    def record_failure(self, switch_id: str, to: str, error: str, code=None) -> None:
        self.emails_failed += 1
        self.failures.append(FailureRecord(switch_id=switch_id, to=to, error=error, code=code))

    def failure_sample(self, limit: int) -> list[FailureRecord]:
        return self.failures[:limit]


@dataclass
class PendingAlert:
    """A due switch paired with the notifications rendered for it."""

    due: DueSwitch
    notifications: list[RenderedNotification]


@dataclass
class PendingReminder:
    """An owner reminder paired with its rendered email."""

    candidate: ReminderCandidate
    notification: RenderedNotification


def send_one(
    transport: EmailTransport,
    switch_id: str,
    notification: RenderedNotification,
    stats: DispatchStats,
    sender_name: str | None = None,
) -> bool:
    """Attempt a single delivery; failures are recorded, never raised."""
    try:
        transport.send(
            to=notification.to,
            subject=notification.subject,
            text_body=notification.text_body,
            html_body=notification.html_body,
            sender_name=sender_name,
        )
    except DeliveryError as e:
        logger.warning(f"Delivery to {notification.to} for switch {switch_id} failed: {e.message} ({e.code})")
        stats.record_failure(switch_id, notification.to, e.message, e.code)
        return False
    except Exception as e:
        logger.exception(f"Unexpected transport error for switch {switch_id}")
        stats.record_failure(switch_id, notification.to, str(e) or "Unknown transport error")
        return False
    return True


def mark_alert_sent(
    db: Session,
    due: DueSwitch,
    now: datetime,
    complete: bool = False,
) -> bool:
    """Record that this cycle's alert went out.

    Conditional on last_alert_sent_at still holding the value read at
    selection time. Returns False when another run got there first or the
    write failed.
    """
    query = db.query(Switch).filter(Switch.id == due.switch.id)
    if due.alert_marker is None:
        query = query.filter(Switch.last_alert_sent_at.is_(None))
    else:
        query = query.filter(Switch.last_alert_sent_at == due.alert_marker)

    values = {"last_alert_sent_at": to_iso(now)}
    if complete:
        values["status"] = "completed"

    try:
        updated = query.update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to record alert for switch {due.switch.id}")
        return False

    if not updated:
        logger.info(f"Switch {due.switch.id} was already marked alerted by another run")
        return False
    return True


def mark_reminder_sent(db: Session, candidate: ReminderCandidate, now: datetime) -> bool:
    """Record an owner reminder; the urgent tier also covers the halfway one."""
    query = db.query(Switch).filter(Switch.id == candidate.switch.id)
    if candidate.tier == 90:
        column, marker = Switch.reminder_90_sent_at, candidate.marker_90
        values = {"reminder_90_sent_at": to_iso(now), "reminder_50_sent_at": to_iso(now)}
    else:
        column, marker = Switch.reminder_50_sent_at, candidate.marker_50
        values = {"reminder_50_sent_at": to_iso(now)}

    query = query.filter(column.is_(None) if marker is None else column == marker)

    try:
        updated = query.update(values, synchronize_session=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to record reminder for switch {candidate.switch.id}")
        return False

    if not updated:
        logger.info(f"Switch {candidate.switch.id} was already marked reminded (tier {candidate.tier}) by another run")
        return False
    return True


def dispatch_alerts(
    db: Session,
    transport: EmailTransport,
    pending: list[PendingAlert],
    now: datetime,
    stats: DispatchStats,
    sender_name: str | None = None,
    complete_on_trigger: bool = False,
) -> int:
    """Deliver every pending alert and commit the per-switch markers.

    Each switch is marked alerted only after all of its recipients were
    attempted and at least one succeeded. Returns the number of switches
    marked.
    """
    marked = 0
    for item in pending:
        switch_id = item.due.switch.id
        successes = 0
        for notification in item.notifications:
            if send_one(transport, switch_id, notification, stats, sender_name):
                successes += 1
                stats.emails_sent += 1

        if successes == 0:
            logger.warning(f"No deliveries succeeded for switch {switch_id}; will retry next run")
            continue

        if mark_alert_sent(db, item.due, now, complete=complete_on_trigger):
            marked += 1
            logger.info(f"Switch {switch_id} triggered: {successes}/{len(item.notifications)} delivered")

    return marked


def dispatch_reminders(
    db: Session,
    transport: EmailTransport,
    pending: list[PendingReminder],
    now: datetime,
    stats: DispatchStats,
    sender_name: str | None = None,
) -> int:
    """Send owner reminders, marking each only after a successful send."""
    sent = 0
    for item in pending:
        switch_id = item.candidate.switch.id
        if not send_one(transport, switch_id, item.notification, stats, sender_name):
            continue
        stats.reminders_sent += 1
        sent += 1
        mark_reminder_sent(db, item.candidate, now)
    return sent
