"""Check-ins and switch status transitions."""
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.switch import Switch
from app.services.deadlines import to_iso, utc_now

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    """Requested status change is not allowed from the switch's current status."""


def record_checkin(db: Session, user_id: str, now: datetime | None = None) -> int:
    """Move the baseline of every active switch owned by the user to now.

    Paused and completed switches are left alone. Returns the number of
    switches updated.
    """
    now = now or utc_now()
    updated = db.query(Switch).filter(
        Switch.user_id == user_id,
        Switch.status == "active",
    ).update(
        {"last_checkin_at": to_iso(now)},
        synchronize_session=False,
    )
    db.commit()
    logger.info(f"Check-in for user {user_id}: {updated} active switches")
    return updated


def set_switch_active(db: Session, switch: Switch, active: bool, now: datetime | None = None) -> Switch:
    """Pause or reactivate a switch.

    Reactivation counts as a check-in, so a switch whose interval elapsed
    while paused does not fire the moment it is turned back on.

    Raises:
        InvalidTransition: if the switch is completed
    """
    if switch.status == "completed":
        raise InvalidTransition("Completed switches cannot be paused or reactivated")

    now = now or utc_now()
    if active:
        if switch.status != "active":
            switch.status = "active"
            switch.last_checkin_at = to_iso(now)
    else:
        switch.status = "paused"

    db.commit()
    db.refresh(switch)
    return switch
