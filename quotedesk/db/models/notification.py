"""Notification delivery log."""

from datetime import datetime
from enum import Enum
from sqlalchemy import Column, DateTime, Integer, JSON, String, Text

from quotedesk.db.base import Base


class NotificationChannel(str, Enum):
    """Available delivery channels."""
    EMAIL = "email"
    WEBHOOK = "webhook"


class NotificationLog(Base):
    """One delivery attempt of an approval or rejection message."""
    __tablename__ = "notification_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_key = Column(String(64), nullable=True, index=True)

    channel = Column(String(20), nullable=False)  # email, webhook
    template_kind = Column(String(50), nullable=False)
    recipient = Column(String(500), nullable=False)

    subject = Column(String(500), nullable=True)
    body = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="pending")  # pending, sent, failed
    error_message = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    sent_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationLog {self.channel}:{self.recipient} [{self.status}]>"
