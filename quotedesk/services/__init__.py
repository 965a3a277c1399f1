"""Services for QuoteDesk."""

from quotedesk.services.notifications import NotificationService

__all__ = [
    "NotificationService",
]
