from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from quotedesk.core.approval import ApprovalService
from quotedesk.db.session import SessionLocal
from quotedesk.services.notifications import NotificationService


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_notifier(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_approval_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> ApprovalService:
    return ApprovalService(db, notifier=notifier)
