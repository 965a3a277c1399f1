"""Errors raised by the approval workflow.

Three failure families are kept apart so callers can tell the user what
actually happened:

- GuardDenied: the action is not legal in the current state. Nothing changed.
- PersistenceError: loading or saving failed. Nothing changed.
- SendError: the transition committed but a notification could not be sent.
"""

from typing import Optional

from .states import ApprovalAction, GuardReason, Tier


class GuardDenied(Exception):
    """Raised when a transition guard refuses an action."""

    def __init__(self, reason: GuardReason, tier: Tier, action: ApprovalAction):
        super().__init__(f"Cannot {action.value} at {tier.value}: {reason.value}")
        self.reason = reason
        self.tier = tier
        self.action = action


class PersistenceError(Exception):
    """Raised when the case store cannot load or save a record."""

    def __init__(self, message: str, case_key: Optional[str] = None):
        super().__init__(message)
        self.case_key = case_key


class CaseNotFoundError(PersistenceError):
    """Raised when no case exists for the given key."""

    def __init__(self, case_key: str):
        super().__init__(f"Case {case_key} not found", case_key)


class SendError(Exception):
    """Raised by a notification port when delivery fails."""

    def __init__(self, channel: str, message: str):
        super().__init__(f"Failed to notify {channel}: {message}")
        self.channel = channel
        self.message = message
