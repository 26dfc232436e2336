"""Evaluator run summary schemas."""
from pydantic import BaseModel, Field


class FailureResponse(BaseModel):
    """One failed delivery."""
    
    switch_id: str = Field(serialization_alias="switchId")
    to: str
    error: str
    code: str | int | None = None
    
    class Config:
        from_attributes = True


class CheckSwitchesResponse(BaseModel):
    """Summary returned to the scheduler."""
    
    ok: bool
    checked: int = 0
    due: int = 0
    reminders_50: int = Field(0, serialization_alias="reminders50")
    reminders_90: int = Field(0, serialization_alias="reminders90")
    emails_sent: int = Field(0, serialization_alias="emailsSent")
    reminders_sent: int = Field(0, serialization_alias="remindersSent")
    emails_failed: int = Field(0, serialization_alias="emailsFailed")
    failures: list[FailureResponse] = Field(default_factory=list)
    error: str | None = None
    
    class Config:
        from_attributes = True
