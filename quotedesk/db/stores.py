"""SQLAlchemy-backed stores used by the approval service.

The case store and history log share one session, so a transition's record
update and its audit entry commit or roll back together.
"""

import logging
import uuid
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quotedesk.core.approval.errors import CaseNotFoundError, PersistenceError
from quotedesk.core.approval.records import ApprovalRecord, HistoryEntry
from quotedesk.core.approval.states import (
    ApprovalAction,
    CaseStatus,
    Tier,
    TIER_ORDER,
)
from quotedesk.db.models import ApprovalHistory, Case, Staff

logger = logging.getLogger(__name__)

# Columns copied between Case rows and ApprovalRecord values
RECORD_COLUMNS = [
    "applicant_approved_at",
    "section_head_approved_at",
    "director_approved_at",
    "president_approved_at",
    "skip_higher_approval",
    "oral_request_to_section_head",
    "oral_request_to_director",
    "oral_request_to_president",
]

# Staff column naming each tier's approver for an applicant
APPROVER_COLUMNS: Dict[Tier, str] = {
    Tier.SECTION_HEAD: "approver_section_head_id",
    Tier.DIRECTOR: "approver_director_id",
    Tier.PRESIDENT: "approver_president_id",
}


def generate_case_key() -> str:
    return uuid.uuid4().hex[:16]


def next_case_no(db: Session) -> int:
    current = db.query(func.max(Case.case_no)).scalar()
    return (current or 0) + 1


def record_from_case(case: Case) -> ApprovalRecord:
    values = {name: getattr(case, name) for name in RECORD_COLUMNS}
    values["skip_higher_approval"] = bool(values["skip_higher_approval"])
    return ApprovalRecord(case_status=CaseStatus(case.status), **values)


def create_case(
    db: Session,
    subject: str,
    *,
    customer_name: Optional[str] = None,
    staff_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> Case:
    """
    Register a new case with an empty approval record.

    Raises:
        PersistenceError: If the row cannot be written
    """
    record = ApprovalRecord.empty()
    try:
        case = Case(
            case_key=generate_case_key(),
            case_no=next_case_no(db),
            subject=subject,
            customer_name=customer_name,
            staff_id=staff_id,
            remarks=remarks,
            status=record.case_status.value,
            skip_higher_approval=record.skip_higher_approval,
        )
        db.add(case)
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to create case: {e}") from e

    logger.info(f"Created case {case.case_key} (no. {case.case_no})")
    return case


class SqlCaseStore:
    """Case store over the ``cases`` table."""

    def __init__(self, db: Session):
        self.db = db

    def get_case(self, case_key: str) -> Case:
        try:
            case = self.db.query(Case).filter(Case.case_key == case_key).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load case {case_key}: {e}", case_key) from e
        if case is None:
            raise CaseNotFoundError(case_key)
        return case

    def load(self, case_key: str) -> ApprovalRecord:
        return record_from_case(self.get_case(case_key))

    def save(self, case_key: str, record: ApprovalRecord) -> None:
        case = self.get_case(case_key)
        for name in RECORD_COLUMNS:
            setattr(case, name, getattr(record, name))
        case.status = record.case_status.value
        try:
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save case {case_key}: {e}", case_key) from e


class SqlHistoryLog:
    """History log over the append-only ``approval_history`` table."""

    def __init__(self, db: Session):
        self.db = db

    def append(self, entry: HistoryEntry) -> None:
        row = ApprovalHistory(
            case_key=entry.case_key,
            tier=entry.tier.value,
            action=entry.action.value,
            channel=entry.channel,
            occurred_at=entry.occurred_at,
        )
        try:
            self.db.add(row)
            self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to append history for {entry.case_key}: {e}", entry.case_key) from e

    def list(self, case_key: str) -> List[HistoryEntry]:
        try:
            rows = (
                self.db.query(ApprovalHistory)
                .filter(ApprovalHistory.case_key == case_key)
                .order_by(ApprovalHistory.occurred_at.asc(), ApprovalHistory.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read history for {case_key}: {e}", case_key) from e

        return [
            HistoryEntry(
                case_key=row.case_key,
                tier=Tier(row.tier),
                action=ApprovalAction(row.action),
                occurred_at=row.occurred_at,
                channel=row.channel,
            )
            for row in rows
        ]


class SqlApproverDirectory:
    """
    Resolves approvers from the applicant's staff record.

    The applicant is the staff member assigned to the case; higher tiers are
    whoever that staff record names as section head, director and president.
    """

    def __init__(self, db: Session):
        self.db = db

    def approvers(self, case_key: str) -> Dict[Tier, Staff]:
        """Staff holding each tier for a case (tiers without one are omitted)."""
        case = self.db.query(Case).filter(Case.case_key == case_key).first()
        if case is None or case.staff is None:
            return {}

        applicant = case.staff
        result = {Tier.APPLICANT: applicant}

        ids = {tier: getattr(applicant, column) for tier, column in APPROVER_COLUMNS.items()}
        wanted = [i for i in ids.values() if i is not None]
        if wanted:
            by_id = {s.id: s for s in self.db.query(Staff).filter(Staff.id.in_(wanted)).all()}
            for tier in TIER_ORDER[1:]:
                staff = by_id.get(ids[tier])
                if staff is not None:
                    result[tier] = staff
        return result

    def channel_for(self, case_key: str, tier: Tier) -> Optional[str]:
        staff = self.approvers(case_key).get(tier)
        return staff.email if staff is not None and staff.email else None

    def names(self, case_key: str) -> Dict[Tier, str]:
        return {tier: staff.name for tier, staff in self.approvers(case_key).items()}

    def stamp_paths(self, case_key: str) -> Dict[Tier, Optional[str]]:
        approvers = self.approvers(case_key)
        return {tier: approvers[tier].stamp_path if tier in approvers else None for tier in TIER_ORDER}
