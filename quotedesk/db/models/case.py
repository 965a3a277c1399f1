"""Quotation case model.

A case is one price quote. Its approval progress lives on the same row so
that record updates and their audit entries share a transaction.
"""

from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from quotedesk.db.base import Base


class Case(Base):
    __tablename__ = "cases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_key = Column(String(64), nullable=False, unique=True, index=True)
    case_no = Column(Integer, nullable=True, index=True)

    # Quote header
    subject = Column(String(500), nullable=False, default="")
    customer_name = Column(String(255), nullable=True)
    staff_id = Column(Integer, ForeignKey("staffs.id", ondelete="SET NULL"), nullable=True, index=True)
    remarks = Column(Text, nullable=True)

    # Coarse lifecycle tag
    status = Column(String(50), nullable=False, default="in_negotiation", index=True)

    # Tier signatures
    applicant_approved_at = Column(DateTime, nullable=True)
    section_head_approved_at = Column(DateTime, nullable=True)
    director_approved_at = Column(DateTime, nullable=True)
    president_approved_at = Column(DateTime, nullable=True)
    skip_higher_approval = Column(Boolean, nullable=False, default=False)

    # Verbal hand-off markers
    oral_request_to_section_head = Column(DateTime, nullable=True)
    oral_request_to_director = Column(DateTime, nullable=True)
    oral_request_to_president = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    staff = relationship("Staff", back_populates="cases")

    def __repr__(self) -> str:
        return f"<Case {self.case_key} [{self.status}]>"
