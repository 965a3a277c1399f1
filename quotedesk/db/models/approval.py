"""Approval history model.

Append-only: rows are inserted by the history log and never updated or
deleted, including when a case's approval record is reset.
"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from quotedesk.db.base import Base


class ApprovalHistory(Base):
    __tablename__ = "approval_history"

    # Autoincrement id doubles as insertion order for equal timestamps
    id = Column(Integer, primary_key=True, autoincrement=True)
    case_key = Column(String(64), ForeignKey("cases.case_key"), nullable=False, index=True)

    tier = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    channel = Column(String(500), nullable=True)

    occurred_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.case_key} {self.tier}:{self.action}>"
