"""Approval item lifecycle service.

All functions take an ItemRepository as their first argument, so the same
code path serves API handlers, the escalation scheduler and Celery tasks.
Every mutation follows read → pure transition → compare-and-set commit.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from app.core.config import settings
from app.core.exceptions import ConcurrentModification
from app.db.repository import ItemRepository
from app.rules import reporting
from app.rules.approval_rules import RuleBook, get_rule_book, to_cents
from app.rules.state_machine import transition
from app.rules.types import (
    Action,
    Actor,
    ApprovalItem,
    HistoryEntry,
    Priority,
)
from app.services import notifications

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def derive_priority(amount: Decimal) -> Priority:
    """Default priority from amount: > high threshold → high, > medium → medium."""
    if amount > Decimal(str(settings.PRIORITY_HIGH_THRESHOLD)):
        return Priority.high
    if amount > Decimal(str(settings.PRIORITY_MEDIUM_THRESHOLD)):
        return Priority.medium
    return Priority.low


# ─── Create ───

def create_item(
    repo: ItemRepository,
    amount,
    category: str,
    reference: str | None = None,
    description: str = "",
    contractor_name: str | None = None,
    submitted_by: str | None = None,
    project_code: str | None = None,
    attachments=(),
    metadata: dict[str, Any] | None = None,
    priority: Priority | str | None = None,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
    created_by: Actor | None = None,
) -> ApprovalItem:
    """Route a new ticket to its tier and park it at level 1, pending.

    The matched rule's max level, escalation window, batch and signature
    flags are snapshotted onto the item. The intake audit entry names
    ``created_by`` when given, otherwise the submitter.

    Raises:
        InvalidAmount: negative or non-numeric amount.
    """
    now = now or _now()
    rule_book = rule_book or get_rule_book()

    value = to_cents(amount)
    rule = rule_book.resolve(value)
    item_id = uuid.uuid4()

    item = ApprovalItem(
        id=item_id,
        reference=reference or f"APR-{item_id.hex[:8].upper()}",
        amount=value,
        category=category,
        priority=Priority(priority) if priority else derive_priority(value),
        tier=rule.name,
        rule_version=rule_book.version,
        max_level=rule.max_level,
        escalation_after=rule.auto_escalation,
        allow_batch=rule.allow_batch,
        requires_signature=rule.requires_signature,
        submitted_at=now,
        due_at=now + rule.auto_escalation,
        last_activity_at=now,
        description=description,
        contractor_name=contractor_name,
        submitted_by=submitted_by,
        project_code=project_code,
        attachments=tuple(attachments),
        metadata=dict(metadata or {}),
    )
    if created_by is not None:
        repo.add(item, actor_name=created_by.name, actor_role=created_by.role)
    else:
        repo.add(item, actor_name=submitted_by)

    logger.info(
        "Approval item created: id=%s ref=%s amount=%s tier=%s max_level=%d",
        item.id, item.reference, item.amount, item.tier, item.max_level,
    )
    return item


# ─── Read ───

def get_item(repo: ItemRepository, item_id: uuid.UUID) -> ApprovalItem:
    return repo.get(item_id)


def query(
    repo: ItemRepository,
    filters: reporting.ItemFilters | None = None,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
) -> list[ApprovalItem]:
    """Return items matching ``filters`` (all items when None)."""
    now = now or _now()
    rule_book = rule_book or get_rule_book()
    filters = filters or reporting.ItemFilters()
    items = repo.list_items(status=filters.status, category=filters.category)
    return reporting.filter_items(items, filters, now, rule_book.ladder)


def stats(
    repo: ItemRepository,
    filters: reporting.ItemFilters | None = None,
    actor: Actor | None = None,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
) -> reporting.ApprovalStats:
    now = now or _now()
    rule_book = rule_book or get_rule_book()
    items = query(repo, filters, now=now, rule_book=rule_book)
    return reporting.compute_stats(items, now, rule_book.ladder, actor=actor)


# ─── Act ───

def act(
    repo: ItemRepository,
    item_id: uuid.UUID,
    actor: Actor,
    action: Action | str,
    comment: str | None = None,
    signature: str | None = None,
    expected_version: int | None = None,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
) -> ApprovalItem:
    """Apply one human decision to one item.

    Args:
        expected_version: Version the caller last saw. When given and stale,
            fails with ConcurrentModification before doing anything.

    Raises:
        NotFound, InvalidTransition, Unauthorized, ConcurrentModification.
    """
    now = now or _now()
    rule_book = rule_book or get_rule_book()

    snapshot = repo.get(item_id)
    if expected_version is not None and snapshot.version != expected_version:
        raise ConcurrentModification(item_id, expected_version)

    new_item, entry = transition(
        snapshot, Action(action), actor, now, rule_book.ladder,
        comment=comment, signature=signature,
    )
    return commit_transition(repo, snapshot, new_item, entry)


def commit_transition(
    repo: ItemRepository,
    snapshot: ApprovalItem,
    new_item: ApprovalItem,
    entry: HistoryEntry,
) -> ApprovalItem:
    """CAS-commit a computed transition against ``snapshot.version``, then notify."""
    saved = repo.save(new_item, entry, expected_version=snapshot.version)

    logger.info(
        "Approval action: item=%s action=%s actor=%s role=%s level=%d->%d status=%s->%s v%d",
        saved.id, entry.action.value, entry.actor_name, entry.actor_role,
        snapshot.current_level, saved.current_level,
        snapshot.status.value, saved.status.value, saved.version,
    )

    notifications.dispatch(saved, entry)
    return saved
