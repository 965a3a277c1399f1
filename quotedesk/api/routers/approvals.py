"""Approval workflow API endpoints."""

from typing import Any, Dict, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quotedesk.api.deps import get_approval_service, get_db
from quotedesk.core.approval import (
    ActionParams,
    ApprovalAction,
    ApprovalRecord,
    ApprovalService,
    CaseNotFoundError,
    GuardDenied,
    PersistenceError,
    Tier,
    TIER_ORDER,
    project,
)
from quotedesk.db.stores import SqlApproverDirectory

router = APIRouter(prefix="/approvals", tags=["approvals"])


# Schemas
class ApprovalActionRequest(BaseModel):
    tier: Tier
    action: ApprovalAction
    channel: Optional[str] = Field(None, max_length=500)
    enable_skip: bool = False
    actor: Optional[str] = Field(None, max_length=255)


class StampResponse(BaseModel):
    tier: str
    visible: bool
    approved_at: Optional[datetime]
    stamp_path: Optional[str]


class ProgressResponse(BaseModel):
    stage: str
    text: str
    badge: str
    waiting_on: Optional[str]
    stamps: List[StampResponse]


class NotificationFailure(BaseModel):
    channel: str
    error: str


class ApprovalActionResponse(BaseModel):
    case_key: str
    tier: str
    action: str
    record: Dict[str, Any]
    progress: ProgressResponse
    notifications_sent: int
    notification_failures: List[NotificationFailure] = []


class HistoryEntryResponse(BaseModel):
    tier: str
    action: str
    channel: Optional[str]
    occurred_at: datetime


def build_progress(db: Session, case_key: str, record: ApprovalRecord) -> ProgressResponse:
    """Progress projection with approver names and stamp images filled in."""
    directory = SqlApproverDirectory(db)
    description = project(record, directory.names(case_key))
    stamp_paths = directory.stamp_paths(case_key)

    return ProgressResponse(
        stage=description.stage.value,
        text=description.text,
        badge=description.badge.value,
        waiting_on=description.waiting_on.value if description.waiting_on else None,
        stamps=[
            StampResponse(
                tier=tier.value,
                visible=description.stamps[tier],
                approved_at=record.approved_at(tier),
                stamp_path=stamp_paths.get(tier),
            )
            for tier in TIER_ORDER
        ],
    )


# Endpoints
@router.post("/{case_key}/actions", response_model=ApprovalActionResponse)
async def apply_action(
    case_key: str,
    data: ApprovalActionRequest,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
):
    """
    Apply an approval action at one tier of a case.

    The transition is committed before notifications go out; delivery
    failures are reported in the response without undoing it.
    """
    params = ActionParams(channel=data.channel, enable_skip=data.enable_skip, actor=data.actor)

    try:
        outcome = service.apply(case_key, data.tier, data.action, params)
        db.commit()
    except GuardDenied as e:
        raise HTTPException(
            status_code=409,
            detail={"reason": e.reason.value, "message": str(e)},
        )
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SQLAlchemyError as e:
        db.rollback()
        raise HTTPException(status_code=503, detail=f"Failed to save approval: {e}")

    failures = await service.dispatch(outcome)

    return ApprovalActionResponse(
        case_key=case_key,
        tier=data.tier.value,
        action=data.action.value,
        record=outcome.record.to_dict(),
        progress=build_progress(db, case_key, outcome.record),
        notifications_sent=len(outcome.notifications) - len(failures),
        notification_failures=[NotificationFailure(channel=f.channel, error=f.message) for f in failures],
    )


@router.get("/{case_key}/history", response_model=List[HistoryEntryResponse])
async def get_history(
    case_key: str,
    service: ApprovalService = Depends(get_approval_service),
):
    """Get the approval history of a case, oldest first."""
    try:
        service.get_record(case_key)
        entries = service.history(case_key)
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return [
        HistoryEntryResponse(
            tier=e.tier.value,
            action=e.action.value,
            channel=e.channel,
            occurred_at=e.occurred_at,
        )
        for e in entries
    ]


@router.get("/{case_key}/progress", response_model=ProgressResponse)
async def get_progress(
    case_key: str,
    db: Session = Depends(get_db),
    service: ApprovalService = Depends(get_approval_service),
):
    """Get the display progress of a case."""
    try:
        record = service.get_record(case_key)
    except CaseNotFoundError:
        raise HTTPException(status_code=404, detail="Case not found")
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return build_progress(db, case_key, record)
