"""Database models for QuoteDesk."""

from quotedesk.db.models.staff import Staff
from quotedesk.db.models.case import Case
from quotedesk.db.models.approval import ApprovalHistory
from quotedesk.db.models.notification import NotificationLog, NotificationChannel

__all__ = [
    "Staff",
    "Case",
    "ApprovalHistory",
    "NotificationLog",
    "NotificationChannel",
]
