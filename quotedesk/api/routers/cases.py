"""Case registration and lookup endpoints."""

from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from quotedesk.api.deps import get_db
from quotedesk.api.routers.approvals import ProgressResponse, build_progress
from quotedesk.core.approval import ApprovalService, CaseNotFoundError, CaseStatus, PersistenceError
from quotedesk.core.approval.projector import approval_badge
from quotedesk.db.models import Case, Staff
from quotedesk.db.stores import create_case, record_from_case, SqlCaseStore

router = APIRouter(prefix="/cases", tags=["cases"])


# Schemas
class CaseCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=500)
    customer_name: Optional[str] = Field(None, max_length=255)
    staff_id: Optional[int] = None
    remarks: Optional[str] = None


class CaseResponse(BaseModel):
    id: int
    case_key: str
    case_no: Optional[int]
    subject: str
    customer_name: Optional[str]
    staff_id: Optional[int]
    remarks: Optional[str]
    status: str
    applicant_approved_at: Optional[datetime]
    section_head_approved_at: Optional[datetime]
    director_approved_at: Optional[datetime]
    president_approved_at: Optional[datetime]
    skip_higher_approval: bool
    oral_request_to_section_head: Optional[datetime]
    oral_request_to_director: Optional[datetime]
    oral_request_to_president: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CaseDetailResponse(CaseResponse):
    progress: ProgressResponse


class CaseSummary(BaseModel):
    case_key: str
    case_no: Optional[int]
    subject: str
    customer_name: Optional[str]
    staff_name: Optional[str]
    status: str
    approval_badge: str
    created_at: datetime


class CaseListResponse(BaseModel):
    items: List[CaseSummary]
    total: int
    page: int
    per_page: int


class StatusUpdate(BaseModel):
    status: CaseStatus


class StatusUpdateResponse(BaseModel):
    case_key: str
    status: str
    changed: bool


def _summary(case: Case) -> CaseSummary:
    return CaseSummary(
        case_key=case.case_key,
        case_no=case.case_no,
        subject=case.subject,
        customer_name=case.customer_name,
        staff_name=case.staff.name if case.staff else None,
        status=case.status,
        approval_badge=approval_badge(record_from_case(case)).value,
        created_at=case.created_at,
    )


# Endpoints
@router.post("", response_model=CaseResponse, status_code=201)
async def register_case(
    data: CaseCreate,
    db: Session = Depends(get_db),
):
    """Register a new case with an empty approval record."""
    if data.staff_id is not None and db.query(Staff).filter(Staff.id == data.staff_id).first() is None:
        raise HTTPException(status_code=400, detail="Staff member not found")

    try:
        case = create_case(
            db,
            data.subject,
            customer_name=data.customer_name,
            staff_id=data.staff_id,
            remarks=data.remarks,
        )
        db.commit()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    db.refresh(case)
    return CaseResponse.model_validate(case)


@router.get("", response_model=CaseListResponse)
async def list_cases(
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    keyword: Optional[str] = None,
    status: Optional[CaseStatus] = None,
):
    """List cases, newest first, optionally filtered by keyword and status."""
    query = db.query(Case).outerjoin(Staff, Case.staff_id == Staff.id)

    if keyword:
        pattern = f"%{keyword.strip()}%"
        conditions = [
            Case.subject.ilike(pattern),
            Case.customer_name.ilike(pattern),
            Staff.name.ilike(pattern),
        ]
        if keyword.strip().isdigit():
            conditions.append(Case.case_no == int(keyword.strip()))
        query = query.filter(or_(*conditions))

    if status:
        query = query.filter(Case.status == status.value)

    total = query.count()
    cases = query.order_by(Case.case_no.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return CaseListResponse(
        items=[_summary(c) for c in cases],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{case_key}", response_model=CaseDetailResponse)
async def get_case(
    case_key: str,
    db: Session = Depends(get_db),
):
    """Get a case with its approval record and progress."""
    try:
        case = SqlCaseStore(db).get_case(case_key)
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")

    return CaseDetailResponse(
        **CaseResponse.model_validate(case).model_dump(),
        progress=build_progress(db, case_key, record_from_case(case)),
    )


@router.patch("/{case_key}/status", response_model=StatusUpdateResponse)
async def update_status(
    case_key: str,
    data: StatusUpdate,
    db: Session = Depends(get_db),
):
    """Change the coarse lifecycle status of a case."""
    service = ApprovalService(db)
    try:
        changed = service.change_status(case_key, data.status)
        if changed:
            db.commit()
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return StatusUpdateResponse(case_key=case_key, status=data.status.value, changed=changed)
