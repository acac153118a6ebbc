"""SQLAlchemy-backed approval item repository.

Compare-and-set is a single conditional UPDATE:

    UPDATE approval_items SET ..., version = :expected + 1
    WHERE id = :id AND version = :expected

followed by the history INSERT in the same transaction. A rowcount of 0 means
another writer got there first. The (item_id, sequence) unique constraint on
approval_history backs this up at the database level.
"""
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import ConcurrentModification, NotFound
from app.db.repository import ItemRepository
from app.models.approval import ApprovalHistoryRecord, ApprovalItemRecord
from app.rules.types import (
    OPEN_STATUSES,
    ApprovalItem,
    HistoryAction,
    HistoryEntry,
    ItemStatus,
    Priority,
)
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)


class SqlItemRepository(ItemRepository):

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    # ─── Writes ───

    def add(
        self, item: ApprovalItem, actor_name: str | None = None, actor_role: str | None = None,
    ) -> ApprovalItem:
        with self._session_factory() as db:
            db.add(_item_to_record(item))
            db.flush()
            audit_svc.log(
                db=db,
                action="approval_item.created",
                entity_type="approval_item",
                entity_id=item.id,
                actor_name=actor_name,
                actor_role=actor_role,
                after={
                    "reference": item.reference,
                    "amount": str(item.amount),
                    "category": item.category,
                    "tier": item.tier,
                    "max_level": item.max_level,
                    "due_at": item.due_at.isoformat(),
                },
                rule_version=item.rule_version,
                notes=f"Routed to tier '{item.tier}'",
            )
            db.commit()
        return item

    def save(self, item: ApprovalItem, entry: HistoryEntry, expected_version: int) -> ApprovalItem:
        new_version = expected_version + 1
        with self._session_factory() as db:
            result = db.execute(
                update(ApprovalItemRecord)
                .where(
                    ApprovalItemRecord.id == item.id,
                    ApprovalItemRecord.version == expected_version,
                )
                .values(
                    status=item.status.value,
                    current_level=item.current_level,
                    escalation_count=item.escalation_count,
                    due_at=item.due_at,
                    last_activity_at=item.last_activity_at,
                    decided_at=item.decided_at,
                    version=new_version,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                exists = db.execute(
                    select(func.count(ApprovalItemRecord.id)).where(ApprovalItemRecord.id == item.id)
                ).scalar()
                if not exists:
                    raise NotFound(item.id)
                logger.info(
                    "CAS conflict: item=%s expected_version=%s", item.id, expected_version,
                )
                raise ConcurrentModification(item.id, expected_version)

            db.add(_entry_to_record(item.id, entry))
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                logger.warning("History sequence clash on item %s: %s", item.id, exc)
                raise ConcurrentModification(item.id, expected_version) from exc

        return self.get(item.id)

    # ─── Reads ───

    def get(self, item_id: uuid.UUID) -> ApprovalItem:
        with self._session_factory() as db:
            record = db.execute(
                select(ApprovalItemRecord)
                .options(selectinload(ApprovalItemRecord.history))
                .where(ApprovalItemRecord.id == item_id)
            ).scalars().first()
            if record is None:
                raise NotFound(item_id)
            return _record_to_item(record)

    def list_items(self, status=None, category=None) -> list[ApprovalItem]:
        stmt = select(ApprovalItemRecord).options(selectinload(ApprovalItemRecord.history))
        if status is not None:
            stmt = stmt.where(ApprovalItemRecord.status == ItemStatus(status).value)
        if category is not None:
            stmt = stmt.where(func.lower(ApprovalItemRecord.category) == category.lower())
        stmt = stmt.order_by(ApprovalItemRecord.submitted_at.asc())
        with self._session_factory() as db:
            return [_record_to_item(r) for r in db.execute(stmt).scalars().all()]

    def list_overdue(self, now: datetime) -> list[ApprovalItem]:
        stmt = (
            select(ApprovalItemRecord)
            .options(selectinload(ApprovalItemRecord.history))
            .where(
                ApprovalItemRecord.status.in_([s.value for s in OPEN_STATUSES]),
                ApprovalItemRecord.due_at < now,
            )
            .order_by(ApprovalItemRecord.due_at.asc())
        )
        with self._session_factory() as db:
            return [_record_to_item(r) for r in db.execute(stmt).scalars().all()]


# ─── Row <-> domain mapping ───

def _item_to_record(item: ApprovalItem) -> ApprovalItemRecord:
    return ApprovalItemRecord(
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
        item_metadata=dict(item.metadata),
        tier=item.tier,
        rule_version=item.rule_version,
        max_level=item.max_level,
        escalation_after_seconds=int(item.escalation_after.total_seconds()),
        allow_batch=item.allow_batch,
        requires_signature=item.requires_signature,
        current_level=item.current_level,
        status=item.status.value,
        escalation_count=item.escalation_count,
        submitted_at=item.submitted_at,
        due_at=item.due_at,
        last_activity_at=item.last_activity_at,
        decided_at=item.decided_at,
        version=item.version,
    )


def _entry_to_record(item_id: uuid.UUID, entry: HistoryEntry) -> ApprovalHistoryRecord:
    return ApprovalHistoryRecord(
        id=uuid.uuid4(),
        item_id=item_id,
        sequence=entry.sequence,
        level=entry.level,
        actor_name=entry.actor_name,
        actor_role=entry.actor_role,
        action=entry.action.value,
        acted_at=entry.timestamp,
        time_spent_seconds=entry.time_spent.total_seconds(),
        comments=entry.comments,
        signature=entry.signature,
    )


def _record_to_entry(record: ApprovalHistoryRecord) -> HistoryEntry:
    return HistoryEntry(
        sequence=record.sequence,
        level=record.level,
        actor_name=record.actor_name,
        actor_role=record.actor_role,
        action=HistoryAction(record.action),
        timestamp=record.acted_at,
        time_spent=timedelta(seconds=record.time_spent_seconds),
        comments=record.comments,
        signature=record.signature,
    )


def _record_to_item(record: ApprovalItemRecord) -> ApprovalItem:
    return ApprovalItem(
        id=record.id,
        reference=record.reference,
        amount=Decimal(record.amount),
        category=record.category,
        priority=Priority(record.priority),
        tier=record.tier,
        rule_version=record.rule_version,
        max_level=record.max_level,
        escalation_after=timedelta(seconds=record.escalation_after_seconds),
        allow_batch=record.allow_batch,
        requires_signature=record.requires_signature,
        submitted_at=record.submitted_at,
        due_at=record.due_at,
        last_activity_at=record.last_activity_at,
        current_level=record.current_level,
        status=ItemStatus(record.status),
        escalation_count=record.escalation_count,
        decided_at=record.decided_at,
        version=record.version,
        description=record.description,
        contractor_name=record.contractor_name,
        submitted_by=record.submitted_by,
        project_code=record.project_code,
        attachments=tuple(record.attachments or ()),
        metadata=dict(record.item_metadata or {}),
        history=tuple(_record_to_entry(h) for h in record.history),
    )
