"""User preference endpoints."""
import json

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, get_db
from app.models.user import User
from app.schemas.user import UserSettingsResponse, UserSettingsUpdate
from app.services.evaluator import reminders_enabled

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me/settings", response_model=UserSettingsResponse)
def get_my_settings(current_user: User = Depends(get_current_user)):
    """Get your notification preferences."""
    return UserSettingsResponse(reminder_enabled=reminders_enabled(current_user))


@router.patch("/me/settings", response_model=UserSettingsResponse)
def update_my_settings(
    update: UserSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update your notification preferences."""
    try:
        prefs = json.loads(current_user.settings or "{}")
    except ValueError:
        prefs = {}
    
    if update.reminder_enabled is not None:
        prefs["reminder_enabled"] = update.reminder_enabled
    
    current_user.settings = json.dumps(prefs)
    db.commit()
    db.refresh(current_user)
    return UserSettingsResponse(reminder_enabled=reminders_enabled(current_user))
