"""User model."""
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text
from sqlalchemy.orm import relationship

from app.database import Base


class User(Base):
    """Account mirrored from the identity provider on first authenticated request."""
    
    __tablename__ = "users"
    
    id = Column(String(36), primary_key=True)  # identity provider subject
    email = Column(String(255), nullable=False, index=True)
    settings = Column(Text, default="{}")  # JSON for reminder prefs, etc.
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())
    
    # Relationships
    switches = relationship("Switch", back_populates="user", cascade="all, delete-orphan")
    recipients = relationship("Recipient", back_populates="user", cascade="all, delete-orphan")
