"""Display projection of an approval record.

Derives progress text and per-tier stamp visibility. Used by presentation
code only; the record itself stays authoritative.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional

from .records import ApprovalRecord
from .states import TIER_ORDER, Tier


class ProgressStage(str, Enum):
    SELF_APPROVED = "self_approved"
    VERBAL_TO_SECTION_HEAD = "verbal_to_section_head"
    AWAITING_SECTION_HEAD = "awaiting_section_head"
    VERBAL_TO_DIRECTOR = "verbal_to_director"
    AWAITING_DIRECTOR = "awaiting_director"
    VERBAL_TO_PRESIDENT = "verbal_to_president"
    AWAITING_PRESIDENT = "awaiting_president"
    FULLY_APPROVED = "fully_approved"


class ApprovalBadge(str, Enum):
    """Highest tier signed so far, as shown in case lists."""

    PENDING = "pending"
    APPLICANT_APPROVED = "applicant_approved"
    SECTION_HEAD_APPROVED = "section_head_approved"
    DIRECTOR_APPROVED = "director_approved"
    APPROVED = "approved"


STAGE_TEXT: Dict[ProgressStage, str] = {
    ProgressStage.SELF_APPROVED: "self-approved, no further action",
    ProgressStage.VERBAL_TO_SECTION_HEAD: "pending verbal hand-off to section head",
    ProgressStage.AWAITING_SECTION_HEAD: "awaiting section head",
    ProgressStage.VERBAL_TO_DIRECTOR: "pending verbal hand-off to director",
    ProgressStage.AWAITING_DIRECTOR: "awaiting director",
    ProgressStage.VERBAL_TO_PRESIDENT: "pending verbal hand-off to president",
    ProgressStage.AWAITING_PRESIDENT: "awaiting president",
    ProgressStage.FULLY_APPROVED: "fully approved",
}

# Tier whose approver a stage is waiting on
STAGE_TIER: Dict[ProgressStage, Tier] = {
    ProgressStage.VERBAL_TO_SECTION_HEAD: Tier.SECTION_HEAD,
    ProgressStage.AWAITING_SECTION_HEAD: Tier.SECTION_HEAD,
    ProgressStage.VERBAL_TO_DIRECTOR: Tier.DIRECTOR,
    ProgressStage.AWAITING_DIRECTOR: Tier.DIRECTOR,
    ProgressStage.VERBAL_TO_PRESIDENT: Tier.PRESIDENT,
    ProgressStage.AWAITING_PRESIDENT: Tier.PRESIDENT,
}

BADGE_BY_TIER: Dict[Tier, ApprovalBadge] = {
    Tier.APPLICANT: ApprovalBadge.APPLICANT_APPROVED,
    Tier.SECTION_HEAD: ApprovalBadge.SECTION_HEAD_APPROVED,
    Tier.DIRECTOR: ApprovalBadge.DIRECTOR_APPROVED,
    Tier.PRESIDENT: ApprovalBadge.APPROVED,
}


@dataclass(frozen=True)
class ProgressDescription:
    stage: ProgressStage
    text: str
    stamps: Dict[Tier, bool] = field(default_factory=dict)
    badge: ApprovalBadge = ApprovalBadge.PENDING
    waiting_on: Optional[Tier] = None


def progress_stage(record: ApprovalRecord) -> ProgressStage:
    # Several flag combinations can hold at once; first match wins.
    if record.skip_higher_approval and record.applicant_approved_at:
        return ProgressStage.SELF_APPROVED
    if record.oral_request_to_section_head and not record.applicant_approved_at:
        return ProgressStage.VERBAL_TO_SECTION_HEAD
    if not record.section_head_approved_at:
        return ProgressStage.AWAITING_SECTION_HEAD
    if record.oral_request_to_director and not record.director_approved_at:
        return ProgressStage.VERBAL_TO_DIRECTOR
    if not record.director_approved_at:
        return ProgressStage.AWAITING_DIRECTOR
    if record.oral_request_to_president and not record.president_approved_at:
        return ProgressStage.VERBAL_TO_PRESIDENT
    if not record.president_approved_at:
        return ProgressStage.AWAITING_PRESIDENT
    return ProgressStage.FULLY_APPROVED


def stamp_visibility(record: ApprovalRecord) -> Dict[Tier, bool]:
    """Whether each tier's approval stamp is printed."""
    stamps = {Tier.APPLICANT: record.is_approved(Tier.APPLICANT)}
    for tier in TIER_ORDER[1:]:
        stamps[tier] = record.is_approved(tier) and not record.skip_higher_approval
    return stamps


def approval_badge(record: ApprovalRecord) -> ApprovalBadge:
    for tier in reversed(TIER_ORDER):
        if record.is_approved(tier):
            return BADGE_BY_TIER[tier]
    return ApprovalBadge.PENDING


def project(
    record: ApprovalRecord,
    approver_names: Optional[Mapping[Tier, str]] = None,
) -> ProgressDescription:
    """
    Project a record into its display description.

    Args:
        record: Approval record to describe
        approver_names: Optional display names per tier; when the stage is
            waiting on a named approver the name is appended to the text

    Returns:
        ProgressDescription
    """
    stage = progress_stage(record)
    waiting_on = STAGE_TIER.get(stage)
    text = STAGE_TEXT[stage]

    name = (approver_names or {}).get(waiting_on) if waiting_on else None
    if name:
        text = f"{text} ({name})"

    return ProgressDescription(
        stage=stage,
        text=text,
        stamps=stamp_visibility(record),
        badge=approval_badge(record),
        waiting_on=waiting_on,
    )
