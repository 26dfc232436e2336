"""Switch schemas."""
from pydantic import BaseModel, Field, field_validator

ALLOWED_INTERVALS = (1, 7, 14, 30, 60, 90, 365)


class MessageContent(BaseModel):
    """Subject and body of a switch's message; may contain name tokens."""
    
    subject: str = Field("", max_length=255)
    body: str = ""


class MessageResponse(MessageContent):
    """Stored message."""
    
    switch_id: str
    updated_at: str | None = None
    
    class Config:
        from_attributes = True


class SwitchCreate(BaseModel):
    """Request to create a switch."""
    
    name: str = Field(..., min_length=1, max_length=100)
    interval_days: int
    grace_days: int = Field(0, ge=0)
    timezone: str = "UTC"
    message: MessageContent | None = None
    recipient_ids: list[str] = Field(default_factory=list)
    
    @field_validator("interval_days")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v not in ALLOWED_INTERVALS:
            raise ValueError(f"interval_days must be one of {', '.join(str(i) for i in ALLOWED_INTERVALS)}")
        return v


class SwitchUpdate(BaseModel):
    """Request to edit a switch."""
    
    name: str | None = Field(None, min_length=1, max_length=100)
    interval_days: int | None = None
    grace_days: int | None = Field(None, ge=0)
    timezone: str | None = None
    
    @field_validator("interval_days")
    @classmethod
    def validate_interval(cls, v: int | None) -> int | None:
        if v is not None and v not in ALLOWED_INTERVALS:
            raise ValueError(f"interval_days must be one of {', '.join(str(i) for i in ALLOWED_INTERVALS)}")
        return v


class SwitchStatusUpdate(BaseModel):
    """Pause (false) or reactivate (true) a switch."""
    
    active: bool


class SwitchRecipientsUpdate(BaseModel):
    """Replace the recipients attached to a switch."""
    
    recipient_ids: list[str]


class SwitchResponse(BaseModel):
    """Switch with its computed deadline."""
    
    id: str
    name: str
    status: str
    interval_days: int
    grace_days: int
    timezone: str | None
    created_at: str
    last_checkin_at: str | None
    last_alert_sent_at: str | None
    deadline_at: str | None = None
    recipient_ids: list[str] = Field(default_factory=list)
    has_message: bool = False
    
    class Config:
        from_attributes = True


class CheckinResponse(BaseModel):
    """Result of a check-in."""
    
    checked_in_at: str
    switches_updated: int
