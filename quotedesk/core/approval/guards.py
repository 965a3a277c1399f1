"""Transition guards.

Pure predicates deciding whether an action may be applied to a record.
Evaluated before any mutation; a denied action leaves record and history
untouched.
"""

from typing import NamedTuple, Optional

from .records import ApprovalRecord
from .states import (
    APPROVAL_ACTIONS,
    ApprovalAction,
    GuardReason,
    Tier,
    is_terminal,
    previous_tier,
)


class GuardResult(NamedTuple):
    """Outcome of a guard check."""

    allowed: bool
    reason: Optional[GuardReason] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = GuardResult(True)


def _deny(reason: GuardReason) -> GuardResult:
    return GuardResult(False, reason)


def can_apply(
    record: ApprovalRecord,
    tier: Tier,
    action: ApprovalAction,
    channel: Optional[str] = None,
) -> GuardResult:
    """
    Check whether ``action`` may be applied at ``tier``.

    Args:
        record: Current approval record
        tier: Tier the action targets
        action: Requested action
        channel: Resolved contact channel (next approver for forward/resend,
            rejection recipient for reject)

    Returns:
        ALLOWED, or a denied GuardResult carrying the reason
    """
    # Full reset is always available
    if action == ApprovalAction.CANCEL_APPLICANT_APPROVAL:
        return ALLOWED

    if record.skip_higher_approval and tier != Tier.APPLICANT:
        return _deny(GuardReason.HIGHER_APPROVAL_DISABLED)

    if action in APPROVAL_ACTIONS:
        return _check_approval(record, tier, action, channel)

    if action == ApprovalAction.REJECT:
        return _check_reject(record, tier, channel)

    if action == ApprovalAction.RESEND_NOTIFICATION:
        if not channel:
            return _deny(GuardReason.MISSING_NEXT_APPROVER_CHANNEL)
        return ALLOWED

    raise ValueError(f"Unknown approval action: {action}")


def _check_approval(
    record: ApprovalRecord,
    tier: Tier,
    action: ApprovalAction,
    channel: Optional[str],
) -> GuardResult:
    predecessor = previous_tier(tier)
    if predecessor is not None and not record.is_approved(predecessor):
        return _deny(GuardReason.PREDECESSOR_MISSING)

    # Forwarding from a skipped applicant re-opens the normal chain
    reopening = (
        tier == Tier.APPLICANT
        and action == ApprovalAction.APPROVE_AND_FORWARD
        and record.skip_higher_approval
    )
    if record.is_approved(tier) and not reopening:
        return _deny(GuardReason.ALREADY_APPROVED)

    if (
        action == ApprovalAction.APPROVE_AND_FORWARD
        and not is_terminal(tier)
        and not channel
    ):
        return _deny(GuardReason.MISSING_NEXT_APPROVER_CHANNEL)

    return ALLOWED


def _check_reject(record: ApprovalRecord, tier: Tier, channel: Optional[str]) -> GuardResult:
    if tier == Tier.APPLICANT:
        return _deny(GuardReason.NOT_REJECTABLE)
    if record.any_approved_above(tier):
        return _deny(GuardReason.HIGHER_TIER_APPROVED)
    if not channel:
        return _deny(GuardReason.MISSING_REJECT_TARGET)
    return ALLOWED


def available_actions(
    record: ApprovalRecord,
    tier: Tier,
    channel: Optional[str] = None,
) -> list[ApprovalAction]:
    """Actions currently allowed at ``tier`` given ``channel``."""
    return [action for action in ApprovalAction if can_apply(record, tier, action, channel)]
