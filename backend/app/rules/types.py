"""Domain types for the approval workflow engine.

These are plain frozen dataclasses: the state machine never mutates an item,
it returns a new one. Repositories translate them to and from storage rows.
"""
import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any


class ItemStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    escalated = "escalated"
    expired = "expired"


OPEN_STATUSES = frozenset({ItemStatus.pending, ItemStatus.escalated})
TERMINAL_STATUSES = frozenset({ItemStatus.approved, ItemStatus.rejected, ItemStatus.expired})


class Action(str, enum.Enum):
    """What a caller asks the engine to do."""

    approve = "approve"
    reject = "reject"
    escalate = "escalate"
    comment = "comment"


class HistoryAction(str, enum.Enum):
    """What the audit trail records."""

    approved = "approved"
    rejected = "rejected"
    escalated = "escalated"
    commented = "commented"
    expired = "expired"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


@dataclass(frozen=True)
class Actor:
    name: str
    role: str


SYSTEM_ACTOR = Actor(name="system", role="automation")


@dataclass(frozen=True)
class HistoryEntry:
    sequence: int
    level: int
    actor_name: str
    actor_role: str
    action: HistoryAction
    timestamp: datetime
    time_spent: timedelta
    comments: str | None = None
    signature: str | None = None


@dataclass(frozen=True)
class ApprovalItem:
    id: uuid.UUID
    reference: str
    amount: Decimal
    category: str
    priority: Priority

    # Snapshot of the matched tier, taken at creation
    tier: str
    rule_version: str
    max_level: int
    escalation_after: timedelta
    allow_batch: bool
    requires_signature: bool

    submitted_at: datetime
    due_at: datetime
    last_activity_at: datetime

    current_level: int = 1
    status: ItemStatus = ItemStatus.pending
    escalation_count: int = 0
    decided_at: datetime | None = None
    version: int = 1

    description: str = ""
    contractor_name: str | None = None
    submitted_by: str | None = None
    project_code: str | None = None
    attachments: tuple[str, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    history: tuple[HistoryEntry, ...] = ()

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_overdue(self, now: datetime) -> bool:
        return self.is_open and now > self.due_at
