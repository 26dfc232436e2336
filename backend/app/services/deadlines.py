"""Deadline arithmetic and per-cycle idempotency rules for switches.

All instants are handled as timezone-aware UTC datetimes. Stored values are
ISO-8601 strings; anything without an offset is read as UTC.
"""
from datetime import datetime, timezone

from dateutil.relativedelta import relativedelta

FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current instant, timezone-aware."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize an instant the way it is stored."""
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(value) -> datetime | None:
    """Parse a stored timestamp.

    Returns None for missing or unparseable values rather than raising, so a
    single bad row can be skipped by the caller.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = str(value).strip()
        if not raw:
            return None
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def get_baseline(switch) -> datetime | None:
    """Last check-in, or creation time if the owner never checked in."""
    return parse_timestamp(switch.last_checkin_at or switch.created_at)


def get_deadline(baseline: datetime, interval_days: int, grace_days: int = 0) -> datetime:
    """Instant at which a switch triggers.

    Interval and grace are added as calendar days. A non-positive interval
    means the switch is due as soon as it exists; negative grace counts as 0.
    A window too large for the calendar clamps to FAR_FUTURE, so the switch
    is never due.
    """
    interval = interval_days or 0
    if interval <= 0:
        return baseline
    grace = max(grace_days or 0, 0)
    try:
        return baseline + relativedelta(days=interval + grace)
    except OverflowError:
        return FAR_FUTURE


def sent_for_cycle(marker, baseline: datetime) -> bool:
    """Whether a send marker (alert or reminder) already covers this cycle.

    An unparseable marker counts as not sent; the next successful send
    overwrites it.
    """
    sent_at = parse_timestamp(marker)
    return sent_at is not None and sent_at >= baseline


def elapsed_fraction(baseline: datetime, deadline: datetime, now: datetime) -> float:
    """Share of the window between baseline and deadline that has passed."""
    window = (deadline - baseline).total_seconds()
    if window <= 0:
        return 1.0
    return (now - baseline).total_seconds() / window
