"""Switch and message models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.database import Base

SWITCH_STATUSES = ("active", "paused", "completed")


class Switch(Base):
    """A dead-man's switch: fires its message when the owner stops checking in."""
    
    __tablename__ = "switches"
    __table_args__ = (
        Index("ix_switches_status", "status"),
        Index("ix_switches_user_status", "user_id", "status"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)
    
    # active, paused, completed
    status = Column(String(20), nullable=False, default="active")
    
    interval_days = Column(Integer, nullable=False)
    grace_days = Column(Integer, nullable=False, default=0)
    timezone = Column(String(64), default="UTC")  # display only
    
    # ISO-8601 instants
    created_at = Column(String(32), nullable=False, default=lambda: datetime.now(timezone.utc).isoformat())
    last_checkin_at = Column(String(32))
    last_alert_sent_at = Column(String(32))
    reminder_50_sent_at = Column(String(32))
    reminder_90_sent_at = Column(String(32))
    
    # Relationships
    user = relationship("User", back_populates="switches")
    message = relationship("Message", back_populates="switch", uselist=False, cascade="all, delete-orphan")
    recipient_links = relationship("SwitchRecipient", back_populates="switch", cascade="all, delete-orphan")


class Message(Base):
    """The pre-written notification for a switch (one per switch)."""
    
    __tablename__ = "messages"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    switch_id = Column(String(36), ForeignKey("switches.id", ondelete="CASCADE"), unique=True, nullable=False)
    subject = Column(String(255), default="")
    body = Column(Text, default="")
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())
    updated_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat(), onupdate=lambda: datetime.now(timezone.utc).isoformat())
    
    switch = relationship("Switch", back_populates="message")
