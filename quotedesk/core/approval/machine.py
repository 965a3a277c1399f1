"""Approval state machine implementation.

Handlers are pure: they take the current record and return the new record,
the history entry to append and the notifications to send. Persistence and
delivery are left to the caller.
"""

from datetime import datetime
from typing import Callable, Dict, List, NamedTuple, Optional

from .errors import GuardDenied
from .guards import available_actions, can_apply
from .records import (
    ActionParams,
    ApprovalRecord,
    HistoryEntry,
    NotificationRequest,
    utcnow,
)
from .states import (
    ApprovalAction,
    TemplateKind,
    Tier,
    TIER_ORDER,
    is_terminal,
    next_tier,
    previous_tier,
)


class TransitionResult(NamedTuple):
    """What a successful handler produced."""

    record: ApprovalRecord
    history_entry: Optional[HistoryEntry]
    notifications: List[NotificationRequest]


HandlerFn = Callable[[str, ApprovalRecord, Tier, ActionParams, datetime], TransitionResult]


def _entry(case_key: str, tier: Tier, action: ApprovalAction, now: datetime,
           channel: Optional[str] = None) -> HistoryEntry:
    return HistoryEntry(case_key=case_key, tier=tier, action=action, occurred_at=now, channel=channel)


def _forward_request(case_key: str, tier: Tier, params: ActionParams, *, resend: bool = False) -> NotificationRequest:
    return NotificationRequest(
        channel=params.channel,
        template_kind=TemplateKind.FORWARD,
        context={
            "case_key": case_key,
            "tier": tier.value,
            "approved_by": params.actor,
            "resend": resend,
        },
    )


def approve_only(case_key: str, record: ApprovalRecord, tier: Tier,
                 params: ActionParams, now: datetime) -> TransitionResult:
    new_record = record.with_approval(tier, now)
    if tier == Tier.APPLICANT and params.enable_skip:
        new_record = new_record.evolve(skip_higher_approval=True)
    return TransitionResult(new_record, _entry(case_key, tier, ApprovalAction.APPROVE_ONLY, now), [])


def approve_and_forward(case_key: str, record: ApprovalRecord, tier: Tier,
                        params: ActionParams, now: datetime) -> TransitionResult:
    new_record = record.with_approval(tier, now)
    if tier == Tier.APPLICANT:
        new_record = new_record.evolve(skip_higher_approval=False)

    notifications = []
    if not is_terminal(tier):
        notifications.append(_forward_request(case_key, tier, params))

    entry = _entry(case_key, tier, ApprovalAction.APPROVE_AND_FORWARD, now, params.channel)
    return TransitionResult(new_record, entry, notifications)


def approve_with_oral_request(case_key: str, record: ApprovalRecord, tier: Tier,
                              params: ActionParams, now: datetime) -> TransitionResult:
    new_record = record.with_approval(tier, now)
    following = next_tier(tier)
    if following is not None:
        new_record = new_record.with_oral_request(following, now)
    return TransitionResult(
        new_record,
        _entry(case_key, tier, ApprovalAction.APPROVE_WITH_ORAL_REQUEST, now),
        [],
    )


def reject(case_key: str, record: ApprovalRecord, tier: Tier,
           params: ActionParams, now: datetime) -> TransitionResult:
    # The predecessor's sign-off is what let the case reach this tier
    new_record = record.with_approval(tier, None)
    predecessor = previous_tier(tier)
    if predecessor is not None:
        new_record = new_record.with_approval(predecessor, None)

    notification = NotificationRequest(
        channel=params.channel,
        template_kind=TemplateKind.REJECTION,
        context={
            "case_key": case_key,
            "tier": tier.value,
            "rejected_by": params.actor,
        },
    )
    entry = _entry(case_key, tier, ApprovalAction.REJECT, now, params.channel)
    return TransitionResult(new_record, entry, [notification])


def cancel_applicant_approval(case_key: str, record: ApprovalRecord, tier: Tier,
                              params: ActionParams, now: datetime) -> TransitionResult:
    new_record = ApprovalRecord.empty(case_status=record.case_status)
    entry = _entry(case_key, Tier.APPLICANT, ApprovalAction.CANCEL_APPLICANT_APPROVAL, now)
    return TransitionResult(new_record, entry, [])


def resend_notification(case_key: str, record: ApprovalRecord, tier: Tier,
                        params: ActionParams, now: datetime) -> TransitionResult:
    return TransitionResult(record, None, [_forward_request(case_key, tier, params, resend=True)])


HANDLERS: Dict[ApprovalAction, HandlerFn] = {
    ApprovalAction.APPROVE_ONLY: approve_only,
    ApprovalAction.APPROVE_AND_FORWARD: approve_and_forward,
    ApprovalAction.APPROVE_WITH_ORAL_REQUEST: approve_with_oral_request,
    ApprovalAction.REJECT: reject,
    ApprovalAction.CANCEL_APPLICANT_APPROVAL: cancel_applicant_approval,
    ApprovalAction.RESEND_NOTIFICATION: resend_notification,
}


class ApprovalStateMachine:
    """
    State machine for one case's sign-off chain.

    Wraps an ApprovalRecord and applies guarded actions to it:
    - Guard evaluation before any change
    - Pure handler dispatch
    - In-memory record of produced history entries
    """

    def __init__(
        self,
        case_key: str,
        record: Optional[ApprovalRecord] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the state machine.

        Args:
            case_key: Key of the case being approved
            record: Current approval record (empty when omitted)
            clock: Source of "now" for timestamps
        """
        self.case_key = case_key
        self._record = record or ApprovalRecord.empty()
        self._clock = clock
        self._history: list[HistoryEntry] = []

    @property
    def record(self) -> ApprovalRecord:
        """Current approval record."""
        return self._record

    @property
    def is_fully_approved(self) -> bool:
        if self._record.skip_higher_approval:
            return self._record.is_approved(Tier.APPLICANT)
        return all(self._record.is_approved(t) for t in TIER_ORDER)

    def can_perform(self, tier: Tier, action: ApprovalAction, channel: Optional[str] = None) -> bool:
        return bool(can_apply(self._record, tier, action, channel))

    def get_available_actions(self, tier: Tier, channel: Optional[str] = None) -> list[ApprovalAction]:
        return available_actions(self._record, tier, channel)

    def apply(
        self,
        tier: Tier,
        action: ApprovalAction,
        params: Optional[ActionParams] = None,
    ) -> TransitionResult:
        """
        Apply an action at a tier.

        Returns:
            TransitionResult with the new record, history entry (None for a
            resend) and notification requests

        Raises:
            GuardDenied: If the guard refuses the action. The record is unchanged.
        """
        params = params or ActionParams()
        verdict = can_apply(self._record, tier, action, params.channel)
        if not verdict.allowed:
            raise GuardDenied(verdict.reason, tier, action)

        result = HANDLERS[action](self.case_key, self._record, tier, params, self._clock())

        self._record = result.record
        if result.history_entry is not None:
            self._history.append(result.history_entry)
        return result

    def get_history(self) -> list[HistoryEntry]:
        """History entries produced by this machine instance."""
        return self._history.copy()
