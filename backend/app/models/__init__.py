"""SQLAlchemy models package."""
from app.models.user import User
from app.models.switch import Message, Switch
from app.models.recipient import Recipient, SwitchRecipient

__all__ = [
    "User",
    "Switch",
    "Message",
    "Recipient",
    "SwitchRecipient",
]
