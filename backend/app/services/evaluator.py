"""Trigger evaluator: one scheduled pass over all active switches.

Stages run strictly in order: select due switches, compose their
notifications, dispatch and record. Only a missing transport configuration
or a failure to load switches fails the pass; everything else is reported as
data in the summary.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.recipient import Recipient, SwitchRecipient
from app.models.switch import Message, Switch
from app.models.user import User
from app.services.composer import compose_notifications, compose_owner_reminder
from app.services.deadlines import utc_now
from app.services.dispatcher import (
    DispatchStats,
    FailureRecord,
    PendingAlert,
    PendingReminder,
    dispatch_alerts,
    dispatch_reminders,
)
from app.services.email_transport import EmailTransport
from app.services.selector import DueSwitch, select_switches

logger = logging.getLogger(__name__)

MISSING_TRANSPORT_ERROR = "Missing SMTP_HOST / EMAIL_FROM / EMAIL_REPLY_TO"


@dataclass
class EvaluationSummary:
    """Result of one evaluator pass."""

    ok: bool
    checked: int = 0
    due: int = 0
    reminders_50: int = 0
    reminders_90: int = 0
    emails_sent: int = 0
    reminders_sent: int = 0
    emails_failed: int = 0
    failures: list[FailureRecord] = field(default_factory=list)
    error: str | None = None


def load_owners(db: Session, user_ids: set[str]) -> dict[str, User]:
    """Owners of the switches in this pass, keyed by id."""
    if not user_ids:
        return {}
    users = db.query(User).filter(User.id.in_(user_ids)).all()
    return {user.id: user for user in users}


def reminders_enabled(user: User | None) -> bool:
    """Owner preference, defaulting to enabled."""
    if user is None:
        return True
    try:
        prefs = json.loads(user.settings or "{}")
    except (TypeError, ValueError):
        return True
    return bool(prefs.get("reminder_enabled", True))


def gather_alert_inputs(db: Session, switch_id: str) -> tuple[Message | None, list[Recipient]]:
    """Snapshot-read a switch's message and attached recipients."""
    message = db.query(Message).filter(Message.switch_id == switch_id).first()
    recipients = (
        db.query(Recipient)
        .join(SwitchRecipient, SwitchRecipient.recipient_id == Recipient.id)
        .filter(SwitchRecipient.switch_id == switch_id)
        .all()
    )
    return message, recipients


def prepare_alert(db: Session, due: DueSwitch, settings: Settings) -> PendingAlert | None:
    """Compose notifications for one due switch, or None to skip it."""
    switch_id = due.switch.id
    try:
        message, recipients = gather_alert_inputs(db, switch_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Skipping switch {switch_id}: failed to load message or recipients")
        return None

    notifications = compose_notifications(
        message,
        recipients,
        app_name=settings.app_name,
        app_base_url=settings.app_base_url,
    )
    if not notifications:
        if message is None or not (message.body or "").strip():
            logger.warning(f"Skipping switch {switch_id}: no usable message")
        else:
            logger.warning(f"Skipping switch {switch_id}: no recipients")
        return None

    return PendingAlert(due=due, notifications=notifications)


def run_evaluation(
    db: Session,
    transport: EmailTransport,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> EvaluationSummary:
    """Run one evaluator pass and return its summary."""
    settings = settings or get_settings()
    now = now or utc_now()

    if not transport.is_configured():
        logger.error(f"Evaluator pass aborted: {MISSING_TRANSPORT_ERROR}")
        return EvaluationSummary(ok=False, error=MISSING_TRANSPORT_ERROR)

    try:
        switches = db.query(Switch).filter(Switch.status == "active").all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Evaluator pass aborted: failed to load active switches")
        return EvaluationSummary(ok=False, error=str(e))

    owners: dict[str, User] = {}
    include_reminders = settings.owner_reminders_enabled
    if include_reminders:
        try:
            owners = load_owners(db, {s.user_id for s in switches})
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to load switch owners; skipping reminders this pass")
            include_reminders = False

    opt_outs = {user_id for user_id, user in owners.items() if not reminders_enabled(user)}
    selection = select_switches(
        switches,
        now,
        reminder_opt_outs=opt_outs,
        include_reminders=include_reminders,
    )

    stats = DispatchStats()

    # Owner reminders
    pending_reminders = []
    for candidate in selection.reminders:
        owner = owners.get(candidate.switch.user_id)
        if owner is None or not owner.email:
            continue
        pending_reminders.append(PendingReminder(
            candidate=candidate,
            notification=compose_owner_reminder(
                candidate.switch,
                candidate.tier,
                candidate.deadline,
                now,
                owner_email=owner.email,
                app_name=settings.app_name,
                app_base_url=settings.app_base_url,
            ),
        ))
    dispatch_reminders(db, transport, pending_reminders, now, stats, sender_name=settings.app_name)

    # Trigger alerts
    pending_alerts = []
    for due in selection.due:
        prepared = prepare_alert(db, due, settings)
        if prepared is not None:
            pending_alerts.append(prepared)
    dispatch_alerts(
        db,
        transport,
        pending_alerts,
        now,
        stats,
        sender_name=f"{settings.app_name} Alerts",
        complete_on_trigger=settings.complete_on_trigger,
    )

    summary = EvaluationSummary(
        ok=True,
        checked=selection.checked,
        due=len(selection.due),
        reminders_50=len(selection.reminders_50),
        reminders_90=len(selection.reminders_90),
        emails_sent=stats.emails_sent,
        reminders_sent=stats.reminders_sent,
        emails_failed=stats.emails_failed,
        failures=stats.failure_sample(settings.failure_sample_limit),
    )
    logger.info(
        f"Evaluator pass: checked={summary.checked} due={summary.due} "
        f"sent={summary.emails_sent} reminders={summary.reminders_sent} failed={summary.emails_failed}"
    )
    return summary
