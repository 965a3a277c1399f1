"""Approval service for managing case sign-off.

Provides the high-level API around the approval state machine: loading and
saving records, appending history, resolving contact channels and
dispatching notification requests.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from .errors import GuardDenied, PersistenceError, SendError
from .machine import ApprovalStateMachine
from .ports import ApproverDirectory, CaseStore, HistoryLog, NotificationPort
from .projector import ProgressDescription, project
from .records import (
    ActionParams,
    ApprovalRecord,
    HistoryEntry,
    NotificationRequest,
    utcnow,
)
from .states import ApprovalAction, CaseStatus, Tier, next_tier, previous_tier

logger = logging.getLogger(__name__)


@dataclass
class ApplyOutcome:
    """Result of a successful ``apply`` call."""

    case_key: str
    tier: Tier
    action: ApprovalAction
    record: ApprovalRecord
    history_entry: Optional[HistoryEntry] = None
    notifications: List[NotificationRequest] = field(default_factory=list)

    @property
    def progress(self) -> ProgressDescription:
        return project(self.record)


class ApprovalService:
    """
    High-level service for case approvals.

    Handles:
    - Guarded transitions with persistence of record and history together
    - Channel resolution through the approver directory
    - Notification dispatch after commit, with failures reported separately
    - Coarse case status changes
    """

    def __init__(
        self,
        db: Session,
        *,
        store: Optional[CaseStore] = None,
        history_log: Optional[HistoryLog] = None,
        directory: Optional[ApproverDirectory] = None,
        notifier: Optional[NotificationPort] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the approval service.

        Args:
            db: Database session shared by the record store and history log
            store: Case store (SQL-backed when omitted)
            history_log: History log (SQL-backed when omitted)
            directory: Approver directory (SQL-backed when omitted)
            notifier: Notification port; without one, requests are not sent
            clock: Source of "now" for timestamps
        """
        from quotedesk.db.stores import SqlApproverDirectory, SqlCaseStore, SqlHistoryLog

        self.db = db
        self.store = store or SqlCaseStore(db)
        self.history_log = history_log or SqlHistoryLog(db)
        self.directory = directory or SqlApproverDirectory(db)
        self.notifier = notifier
        self.clock = clock

    def get_record(self, case_key: str) -> ApprovalRecord:
        return self.store.load(case_key)

    def apply(
        self,
        case_key: str,
        tier: Tier,
        action: ApprovalAction,
        params: Optional[ActionParams] = None,
    ) -> ApplyOutcome:
        """
        Apply an approval action to a case.

        The new record and its history entry are written in the same session;
        the caller commits and then calls :meth:`dispatch`.

        Args:
            case_key: Case to act on
            tier: Tier the action targets
            action: Action to apply
            params: Channel, skip flag and actor name

        Returns:
            ApplyOutcome with the new record and pending notifications

        Raises:
            GuardDenied: If the action is not legal in the current state
            PersistenceError: If the record cannot be loaded or saved
        """
        record = self.store.load(case_key)
        params = self._resolve_channel(case_key, tier, action, params or ActionParams())

        machine = ApprovalStateMachine(case_key, record, clock=self.clock)
        try:
            result = machine.apply(tier, action, params)
        except GuardDenied as e:
            logger.info(f"Denied {action.value} at {tier.value} on case {case_key}: {e.reason.value}")
            raise

        if action != ApprovalAction.RESEND_NOTIFICATION:
            try:
                self.store.save(case_key, result.record)
                if result.history_entry is not None:
                    self.history_log.append(result.history_entry)
            except PersistenceError:
                self.db.rollback()
                logger.exception(f"Failed to persist {action.value} on case {case_key}")
                raise

        logger.info(f"Applied {action.value} at {tier.value} on case {case_key}")
        return ApplyOutcome(
            case_key=case_key,
            tier=tier,
            action=action,
            record=result.record,
            history_entry=result.history_entry,
            notifications=list(result.notifications),
        )

    async def dispatch(self, outcome: ApplyOutcome) -> List[SendError]:
        """
        Send an outcome's notification requests.

        Failures do not undo the transition; they are returned so the caller
        can report "approved, but notification failed".
        """
        if not outcome.notifications:
            return []
        if self.notifier is None:
            logger.warning(f"No notification port configured, {len(outcome.notifications)} request(s) not sent")
            return [SendError(r.channel, "no notification port configured") for r in outcome.notifications]

        failures: List[SendError] = []
        for request in outcome.notifications:
            try:
                await self.notifier.send(request.channel, request.template_kind, request.context)
            except SendError as e:
                logger.warning(f"Notification for case {outcome.case_key} failed: {e}")
                failures.append(e)
        return failures

    def history(self, case_key: str) -> List[HistoryEntry]:
        """Audit trail of a case, oldest first."""
        return self.history_log.list(case_key)

    def progress(self, case_key: str) -> ProgressDescription:
        return project(self.store.load(case_key))

    def change_status(self, case_key: str, status: CaseStatus) -> bool:
        """
        Change the coarse lifecycle status of a case.

        Returns:
            False when the case already had that status, True otherwise
        """
        record = self.store.load(case_key)
        if record.case_status == status:
            return False

        try:
            self.store.save(case_key, record.evolve(case_status=status))
        except PersistenceError:
            self.db.rollback()
            raise

        logger.info(f"Case {case_key} status {record.case_status.value} -> {status.value}")
        return True

    def _resolve_channel(
        self,
        case_key: str,
        tier: Tier,
        action: ApprovalAction,
        params: ActionParams,
    ) -> ActionParams:
        """Fill in the contact channel from the directory when not supplied."""
        if params.channel:
            return params

        if action == ApprovalAction.APPROVE_AND_FORWARD:
            target = next_tier(tier)
        elif action == ApprovalAction.RESEND_NOTIFICATION:
            target = tier
        elif action == ApprovalAction.REJECT:
            target = previous_tier(tier)
        else:
            return params

        if target is None:
            return params

        channel = self.directory.channel_for(case_key, target)
        if not channel:
            return params
        return ActionParams(channel=channel, enable_skip=params.enable_skip, actor=params.actor)
