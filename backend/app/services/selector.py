"""Due-set selection for the trigger evaluator.

Pure functions over switch rows read at the start of a pass; nothing here
touches the database.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime

from app.services.deadlines import (
    elapsed_fraction,
    get_baseline,
    get_deadline,
    sent_for_cycle,
)

logger = logging.getLogger(__name__)

HALFWAY_THRESHOLD = 0.5
URGENT_THRESHOLD = 0.9


@dataclass
class DueSwitch:
    """A switch whose deadline passed and which has not alerted this cycle."""

    switch: object
    baseline: datetime
    deadline: datetime
    # last_alert_sent_at exactly as read, for the conditional update
    alert_marker: str | None


@dataclass
class ReminderCandidate:
    """An owner reminder that should go out in this pass."""

    switch: object
    tier: int  # 50 or 90
    baseline: datetime
    deadline: datetime
    marker_50: str | None
    marker_90: str | None


@dataclass
class Selection:
    """Output of one selection pass."""

    checked: int = 0
    due: list[DueSwitch] = field(default_factory=list)
    reminders: list[ReminderCandidate] = field(default_factory=list)

    @property
    def reminders_50(self) -> list[ReminderCandidate]:
        return [r for r in self.reminders if r.tier == 50]

    @property
    def reminders_90(self) -> list[ReminderCandidate]:
        return [r for r in self.reminders if r.tier == 90]


def evaluate_switch(switch, now: datetime) -> DueSwitch | None:
    """Return a DueSwitch if this switch should fire now, else None."""
    baseline = get_baseline(switch)
    if baseline is None:
        logger.warning(f"Skipping switch {switch.id}: unparseable baseline timestamp")
        return None

    deadline = get_deadline(baseline, switch.interval_days, switch.grace_days)
    if now < deadline:
        return None
    if sent_for_cycle(switch.last_alert_sent_at, baseline):
        return None

    return DueSwitch(
        switch=switch,
        baseline=baseline,
        deadline=deadline,
        alert_marker=switch.last_alert_sent_at,
    )


def evaluate_reminder(switch, now: datetime) -> ReminderCandidate | None:
    """Return the owner reminder tier pending for a not-yet-due switch.

    Only the highest pending tier is returned.
    """
    baseline = get_baseline(switch)
    if baseline is None:
        return None

    deadline = get_deadline(baseline, switch.interval_days, switch.grace_days)
    if now >= deadline:
        return None

    fraction = elapsed_fraction(baseline, deadline, now)
    tier = None
    if fraction >= URGENT_THRESHOLD and not sent_for_cycle(switch.reminder_90_sent_at, baseline):
        tier = 90
    elif fraction >= HALFWAY_THRESHOLD and not sent_for_cycle(switch.reminder_50_sent_at, baseline):
        tier = 50

    if tier is None:
        return None

    return ReminderCandidate(
        switch=switch,
        tier=tier,
        baseline=baseline,
        deadline=deadline,
        marker_50=switch.reminder_50_sent_at,
        marker_90=switch.reminder_90_sent_at,
    )


def select_switches(
    switches: list,
    now: datetime,
    reminder_opt_outs: set[str] | None = None,
    include_reminders: bool = True,
) -> Selection:
    """Split active switches into those due to fire and those owed a reminder.

    Args:
        switches: Switch rows, expected to be in ``active`` status
        now: Evaluation instant
        reminder_opt_outs: Owner ids that disabled reminders
        include_reminders: Set False to skip owner reminders entirely
    """
    opt_outs = reminder_opt_outs or set()
    selection = Selection(checked=len(switches))

    for switch in switches:
        if switch.status != "active":
            continue

        due = evaluate_switch(switch, now)
        if due is not None:
            selection.due.append(due)
            continue

        if not include_reminders or switch.user_id in opt_outs:
            continue

        reminder = evaluate_reminder(switch, now)
        if reminder is not None:
            selection.reminders.append(reminder)

    return selection
