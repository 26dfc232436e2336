"""User preference schemas."""
from pydantic import BaseModel


class UserSettingsResponse(BaseModel):
    """Notification preferences."""
    
    reminder_enabled: bool = True


class UserSettingsUpdate(BaseModel):
    """Partial update of notification preferences."""
    
    reminder_enabled: bool | None = None
