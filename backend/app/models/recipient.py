"""Recipient models."""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class Recipient(Base):
    """A named email address owned by a user, reusable across switches."""
    
    __tablename__ = "recipients"
    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_recipient_owner_email"),
    )
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=False)  # stored lowercase
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())
    
    user = relationship("User", back_populates="recipients")
    switch_links = relationship("SwitchRecipient", back_populates="recipient", cascade="all, delete-orphan")


class SwitchRecipient(Base):
    """Join row attaching a recipient to a switch."""
    
    __tablename__ = "switch_recipients"
    
    switch_id = Column(String(36), ForeignKey("switches.id", ondelete="CASCADE"), primary_key=True)
    recipient_id = Column(String(36), ForeignKey("recipients.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(String(32), default=lambda: datetime.now(timezone.utc).isoformat())
    
    switch = relationship("Switch", back_populates="recipient_links")
    recipient = relationship("Recipient", back_populates="switch_links")
