"""Value types flowing through the approval state machine."""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .states import (
    APPROVED_AT_FIELDS,
    ORAL_REQUEST_FIELDS,
    ApprovalAction,
    CaseStatus,
    TemplateKind,
    Tier,
    higher_tiers,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class ApprovalRecord:
    """
    Approval progress of a single case.

    Immutable: handlers return a modified copy via :meth:`evolve`.
    """

    applicant_approved_at: Optional[datetime] = None
    section_head_approved_at: Optional[datetime] = None
    director_approved_at: Optional[datetime] = None
    president_approved_at: Optional[datetime] = None
    skip_higher_approval: bool = False
    oral_request_to_section_head: Optional[datetime] = None
    oral_request_to_director: Optional[datetime] = None
    oral_request_to_president: Optional[datetime] = None
    case_status: CaseStatus = CaseStatus.IN_NEGOTIATION

    def approved_at(self, tier: Tier) -> Optional[datetime]:
        return getattr(self, APPROVED_AT_FIELDS[tier])

    def is_approved(self, tier: Tier) -> bool:
        return self.approved_at(tier) is not None

    def oral_request_to(self, tier: Tier) -> Optional[datetime]:
        """Verbal hand-off marker into ``tier`` (always None for the applicant)."""
        name = ORAL_REQUEST_FIELDS.get(tier)
        return getattr(self, name) if name else None

    def any_approved_above(self, tier: Tier) -> bool:
        return any(self.is_approved(t) for t in higher_tiers(tier))

    def evolve(self, **changes: Any) -> "ApprovalRecord":
        return replace(self, **changes)

    def with_approval(self, tier: Tier, value: Optional[datetime]) -> "ApprovalRecord":
        return self.evolve(**{APPROVED_AT_FIELDS[tier]: value})

    def with_oral_request(self, tier: Tier, value: Optional[datetime]) -> "ApprovalRecord":
        return self.evolve(**{ORAL_REQUEST_FIELDS[tier]: value})

    @classmethod
    def empty(cls, case_status: CaseStatus = CaseStatus.IN_NEGOTIATION) -> "ApprovalRecord":
        """Record of a freshly saved case."""
        return cls(case_status=case_status)

    def to_dict(self) -> Dict[str, Any]:
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "applicant_approved_at": iso(self.applicant_approved_at),
            "section_head_approved_at": iso(self.section_head_approved_at),
            "director_approved_at": iso(self.director_approved_at),
            "president_approved_at": iso(self.president_approved_at),
            "skip_higher_approval": self.skip_higher_approval,
            "oral_request_to_section_head": iso(self.oral_request_to_section_head),
            "oral_request_to_director": iso(self.oral_request_to_director),
            "oral_request_to_president": iso(self.oral_request_to_president),
            "case_status": self.case_status.value,
        }


@dataclass(frozen=True)
class HistoryEntry:
    """One audit trail event. Never edited once appended."""

    case_key: str
    tier: Tier
    action: ApprovalAction
    occurred_at: datetime
    channel: Optional[str] = None


@dataclass(frozen=True)
class NotificationRequest:
    """A message the caller should send after the transition commits."""

    channel: str
    template_kind: TemplateKind
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionParams:
    """
    Caller-supplied inputs for an action.

    Attributes:
        channel: Contact address of the next approver (forward, resend) or of
            the person receiving a rejection notice (reject).
        enable_skip: Applicant self-approval with no further sign-off
            (approve-only at the applicant tier).
        actor: Display name of whoever is acting; carried into notifications.
    """

    channel: Optional[str] = None
    enable_skip: bool = False
    actor: Optional[str] = None
