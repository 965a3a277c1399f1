"""Staff master model.

Each staff member carries the approvers that sign their cases.
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from quotedesk.db.base import Base


class Staff(Base):
    __tablename__ = "staffs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    stamp_path = Column(String(500), nullable=True)  # Seal image printed on approved documents

    # Approval route for cases this person applies for
    approver_section_head_id = Column(Integer, ForeignKey("staffs.id", ondelete="SET NULL"), nullable=True)
    approver_director_id = Column(Integer, ForeignKey("staffs.id", ondelete="SET NULL"), nullable=True)
    approver_president_id = Column(Integer, ForeignKey("staffs.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    section_head = relationship("Staff", foreign_keys=[approver_section_head_id], remote_side=[id])
    director = relationship("Staff", foreign_keys=[approver_director_id], remote_side=[id])
    president = relationship("Staff", foreign_keys=[approver_president_id], remote_side=[id])
    cases = relationship("Case", back_populates="staff")

    def __repr__(self) -> str:
        return f"<Staff {self.name}>"
