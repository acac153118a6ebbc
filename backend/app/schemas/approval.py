"""Pydantic schemas for approval workflow API endpoints."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.rules.types import Action, ApprovalItem, HistoryEntry, Priority


# ─── Item intake ───

class ApprovalItemCreate(BaseModel):
    amount: Decimal = Field(..., ge=0, description="Ticket amount; routed to a tier by value")
    category: str = Field(..., min_length=1, max_length=50)
    reference: str | None = Field(None, max_length=100, description="e.g. invoice number")
    description: str = ""
    contractor_name: str | None = None
    submitted_by: str | None = None
    project_code: str | None = None
    attachments: list[str] = []
    metadata: dict[str, Any] = {}
    priority: Priority | None = None


# ─── History entry output ───

class HistoryEntryOut(BaseModel):
    sequence: int
    level: int
    actor_name: str
    actor_role: str
    action: str
    timestamp: datetime
    time_spent_seconds: float
    comments: str | None
    signature: str | None

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> "HistoryEntryOut":
        return cls(
            sequence=entry.sequence,
            level=entry.level,
            actor_name=entry.actor_name,
            actor_role=entry.actor_role,
            action=entry.action.value,
            timestamp=entry.timestamp,
            time_spent_seconds=entry.time_spent.total_seconds(),
            comments=entry.comments,
            signature=entry.signature,
        )


# ─── Item output ───

class ApprovalItemOut(BaseModel):
    id: uuid.UUID
    reference: str
    amount: Decimal
    category: str
    priority: str
    description: str
    contractor_name: str | None
    submitted_by: str | None
    project_code: str | None
    attachments: list[str]
    metadata: dict[str, Any]

    tier: str
    rule_version: str
    current_level: int
    max_level: int
    status: str
    escalation_count: int
    allow_batch: bool
    requires_signature: bool
    submitted_at: datetime
    due_at: datetime
    decided_at: datetime | None
    is_overdue: bool
    version: int

    # Populated for the requesting actor
    can_act: bool = False

    history: list[HistoryEntryOut] = []

    @classmethod
    def from_item(cls, item: ApprovalItem, now: datetime, can_act: bool = False) -> "ApprovalItemOut":
        return cls(
            id=item.id,
            reference=item.reference,
            amount=item.amount,
            category=item.category,
            priority=item.priority.value,
            description=item.description,
            contractor_name=item.contractor_name,
            submitted_by=item.submitted_by,
            project_code=item.project_code,
            attachments=list(item.attachments),
            metadata=dict(item.metadata),
            tier=item.tier,
            rule_version=item.rule_version,
            current_level=item.current_level,
            max_level=item.max_level,
            status=item.status.value,
            escalation_count=item.escalation_count,
            allow_batch=item.allow_batch,
            requires_signature=item.requires_signature,
            submitted_at=item.submitted_at,
            due_at=item.due_at,
            decided_at=item.decided_at,
            is_overdue=item.is_overdue(now),
            version=item.version,
            can_act=can_act,
            history=[HistoryEntryOut.from_entry(e) for e in item.history],
        )


# ─── Decision request body ───

class ApprovalActionRequest(BaseModel):
    action: Action
    comment: str | None = None
    signature: str | None = None
    expected_version: int | None = Field(
        None, ge=1, description="Fail with 412 if the item has moved past this version"
    )


# ─── Batch ───

class BatchActionRequest(BaseModel):
    item_ids: list[uuid.UUID] = Field(..., min_length=1)
    action: Action
    comment: str | None = None


class BatchFailureOut(BaseModel):
    item_id: uuid.UUID
    code: str
    message: str


class BatchResultOut(BaseModel):
    succeeded: list[uuid.UUID]
    failed: list[BatchFailureOut]


# ─── List / stats ───

class ApprovalListResponse(BaseModel):
    items: list[ApprovalItemOut]
    total: int


class ApprovalStatsOut(BaseModel):
    count_by_status: dict[str, int]
    total_open_value: Decimal
    mean_time_to_decision_seconds: float | None
    total: int
    total_value: Decimal
    overdue: int
    urgent: int
    my_queue: int | None
    approval_rate: float

