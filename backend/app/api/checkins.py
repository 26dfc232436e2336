"""Check-in API endpoint."""
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db, get_now
from app.models.user import User
from app.schemas.switch import CheckinResponse
from app.services.checkins import record_checkin
from app.services.deadlines import to_iso

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.post("", response_model=CheckinResponse)
def check_in(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
):
    """Check in: push back the deadline of every active switch you own."""
    updated = record_checkin(db, current_user.id, now)
    return CheckinResponse(checked_in_at=to_iso(now), switches_updated=updated)
