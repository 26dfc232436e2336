"""Recipient schemas."""
from pydantic import BaseModel, EmailStr, Field


class RecipientCreate(BaseModel):
    """Request to add a recipient."""
    
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr


class RecipientResponse(BaseModel):
    """Recipient info response."""
    
    id: str
    name: str
    email: str
    created_at: str
    
    class Config:
        from_attributes = True
