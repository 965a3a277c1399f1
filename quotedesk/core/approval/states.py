"""Approval tiers, actions and guard reasons.

Sign-off chain:

    ┌───────────┐   ┌──────────────┐   ┌──────────┐   ┌───────────┐
    │ APPLICANT │──►│ SECTION_HEAD │──►│ DIRECTOR │──►│ PRESIDENT │
    └───────────┘   └──────────────┘   └──────────┘   └───────────┘

Each tier carries its own approval timestamp. A tier may only sign once the
tier before it has signed. In skip mode the applicant's signature is final
and every tier above it is bypassed.
"""

from enum import Enum
from typing import Dict, Optional, Set


class Tier(str, Enum):
    """Approval roles, in chain order."""

    APPLICANT = "applicant"
    SECTION_HEAD = "section_head"
    DIRECTOR = "director"
    PRESIDENT = "president"


class ApprovalAction(str, Enum):
    """Actions that can be applied to a case's approval record."""

    APPROVE_ONLY = "approve_only"
    APPROVE_AND_FORWARD = "approve_and_forward"
    APPROVE_WITH_ORAL_REQUEST = "approve_with_oral_request"
    REJECT = "reject"
    CANCEL_APPLICANT_APPROVAL = "cancel_applicant_approval"
    RESEND_NOTIFICATION = "resend_notification"


class GuardReason(str, Enum):
    """Why an action was refused."""

    HIGHER_APPROVAL_DISABLED = "higher_approval_disabled"
    PREDECESSOR_MISSING = "predecessor_missing"
    ALREADY_APPROVED = "already_approved"
    MISSING_REJECT_TARGET = "missing_reject_target"
    MISSING_NEXT_APPROVER_CHANNEL = "missing_next_approver_channel"
    NOT_REJECTABLE = "not_rejectable"
    HIGHER_TIER_APPROVED = "higher_tier_approved"


class TemplateKind(str, Enum):
    """Message templates the notification port knows how to render."""

    FORWARD = "forward"
    REJECTION = "rejection"


class CaseStatus(str, Enum):
    """Coarse document lifecycle tag, independent of tier signatures."""

    DRAFT = "draft"
    PENDING = "pending"
    IN_NEGOTIATION = "in_negotiation"
    ORDER_RECEIVED = "order_received"
    ORDERED = "ordered"
    DELIVERED = "delivered"
    WAREHOUSE_TRANSFER = "warehouse_transfer"
    COMPLETED = "completed"
    APPROVED = "approved"
    REJECTED = "rejected"


TIER_ORDER: list[Tier] = [
    Tier.APPLICANT,
    Tier.SECTION_HEAD,
    Tier.DIRECTOR,
    Tier.PRESIDENT,
]

TERMINAL_TIER = Tier.PRESIDENT

# Actions that sign a tier
APPROVAL_ACTIONS: Set[ApprovalAction] = {
    ApprovalAction.APPROVE_ONLY,
    ApprovalAction.APPROVE_AND_FORWARD,
    ApprovalAction.APPROVE_WITH_ORAL_REQUEST,
}

# Record field holding each tier's signature
APPROVED_AT_FIELDS: Dict[Tier, str] = {
    Tier.APPLICANT: "applicant_approved_at",
    Tier.SECTION_HEAD: "section_head_approved_at",
    Tier.DIRECTOR: "director_approved_at",
    Tier.PRESIDENT: "president_approved_at",
}

# Record field holding the verbal hand-off marker *into* each tier
ORAL_REQUEST_FIELDS: Dict[Tier, str] = {
    Tier.SECTION_HEAD: "oral_request_to_section_head",
    Tier.DIRECTOR: "oral_request_to_director",
    Tier.PRESIDENT: "oral_request_to_president",
}


def tier_index(tier: Tier) -> int:
    """Position of a tier in the chain (Applicant is 0)."""
    return TIER_ORDER.index(tier)


def previous_tier(tier: Tier) -> Optional[Tier]:
    """Tier that must sign before ``tier``, or None for the applicant."""
    idx = tier_index(tier)
    return TIER_ORDER[idx - 1] if idx > 0 else None


def next_tier(tier: Tier) -> Optional[Tier]:
    """Tier that signs after ``tier``, or None for the terminal tier."""
    idx = tier_index(tier)
    return TIER_ORDER[idx + 1] if idx + 1 < len(TIER_ORDER) else None


def higher_tiers(tier: Tier) -> list[Tier]:
    """All tiers strictly above ``tier``."""
    return TIER_ORDER[tier_index(tier) + 1:]


def is_terminal(tier: Tier) -> bool:
    return tier == TERMINAL_TIER
