"""Interfaces the approval workflow consumes.

Implementations live outside the core: see ``quotedesk.db.stores`` and
``quotedesk.services.notifications``.
"""

from typing import Any, Dict, List, Optional, Protocol

from .records import ApprovalRecord, HistoryEntry
from .states import TemplateKind, Tier


class CaseStore(Protocol):
    def load(self, case_key: str) -> ApprovalRecord:
        """Load a case's record. Raises PersistenceError."""
        ...

    def save(self, case_key: str, record: ApprovalRecord) -> None:
        """Persist a case's record. Raises PersistenceError."""
        ...


class HistoryLog(Protocol):
    def append(self, entry: HistoryEntry) -> None:
        ...

    def list(self, case_key: str) -> List[HistoryEntry]:
        ...


class NotificationPort(Protocol):
    async def send(self, channel: str, template_kind: TemplateKind, context: Dict[str, Any]) -> None:
        """Deliver one message. Raises SendError."""
        ...


class ApproverDirectory(Protocol):
    def channel_for(self, case_key: str, tier: Tier) -> Optional[str]:
        """Contact channel of whoever holds ``tier`` for this case."""
        ...
