"""Approval workflow module for QuoteDesk.

Implements the multi-tier case sign-off state machine, its guards, the
display projection and the persistence-backed service.
"""

from .states import ApprovalAction, CaseStatus, GuardReason, TemplateKind, Tier, TIER_ORDER
from .records import ActionParams, ApprovalRecord, HistoryEntry, NotificationRequest
from .errors import CaseNotFoundError, GuardDenied, PersistenceError, SendError
from .guards import GuardResult, can_apply
from .machine import ApprovalStateMachine, TransitionResult
from .projector import ApprovalBadge, ProgressDescription, ProgressStage, project
from .service import ApplyOutcome, ApprovalService

__all__ = [
    "ApprovalAction",
    "CaseStatus",
    "GuardReason",
    "TemplateKind",
    "Tier",
    "TIER_ORDER",
    "ActionParams",
    "ApprovalRecord",
    "HistoryEntry",
    "NotificationRequest",
    "CaseNotFoundError",
    "GuardDenied",
    "PersistenceError",
    "SendError",
    "GuardResult",
    "can_apply",
    "ApprovalStateMachine",
    "TransitionResult",
    "ApprovalBadge",
    "ProgressDescription",
    "ProgressStage",
    "project",
    "ApplyOutcome",
    "ApprovalService",
]
