"""Read-side filtering and aggregate statistics over approval items.

Pure functions: they take items already loaded from a repository and never
mutate them.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from app.rules.guard import can_act
from app.rules.roles import RoleLadder
from app.rules.types import Actor, ApprovalItem, ItemStatus, Priority


@dataclass
class ItemFilters:
    status: ItemStatus | None = None
    category: str | None = None
    priority: Priority | None = None
    level: int | None = None
    assigned_to: Actor | None = None  # items this actor can act on now
    overdue: bool = False
    search: str | None = None


@dataclass
class ApprovalStats:
    count_by_status: dict[str, int] = field(default_factory=dict)
    total_open_value: Decimal = Decimal("0.00")
    mean_time_to_decision: timedelta | None = None
    total: int = 0
    total_value: Decimal = Decimal("0.00")
    overdue: int = 0
    urgent: int = 0
    my_queue: int | None = None
    approval_rate: float = 0.0


def matches(item: ApprovalItem, filters: ItemFilters, now: datetime, ladder: RoleLadder) -> bool:
    if filters.status is not None and item.status != filters.status:
        return False
    if filters.category is not None and item.category.lower() != filters.category.lower():
        return False
    if filters.priority is not None and item.priority != filters.priority:
        return False
    if filters.level is not None and item.current_level != filters.level:
        return False
    if filters.assigned_to is not None and not can_act(item, filters.assigned_to, ladder):
        return False
    if filters.overdue and not item.is_overdue(now):
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = (item.reference, item.contractor_name or "", item.description or "")
        if not any(needle in h.lower() for h in haystack):
            return False
    return True


def filter_items(items, filters: ItemFilters | None, now: datetime, ladder: RoleLadder) -> list[ApprovalItem]:
    if filters is None:
        return list(items)
    return [i for i in items if matches(i, filters, now, ladder)]


def compute_stats(
    items,
    now: datetime,
    ladder: RoleLadder,
    actor: Actor | None = None,
) -> ApprovalStats:
    """Aggregate counts, values and mean time spent per history entry."""
    items = list(items)
    stats = ApprovalStats(count_by_status={s.value: 0 for s in ItemStatus})

    spent = timedelta(0)
    entries = 0
    for item in items:
        stats.count_by_status[item.status.value] += 1
        stats.total_value += item.amount
        if item.is_open:
            stats.total_open_value += item.amount
        if item.is_overdue(now):
            stats.overdue += 1
        if item.priority is Priority.urgent:
            stats.urgent += 1
        for entry in item.history:
            spent += entry.time_spent
            entries += 1

    stats.total = len(items)
    if entries:
        stats.mean_time_to_decision = spent / entries
    if items:
        approved = stats.count_by_status[ItemStatus.approved.value]
        stats.approval_rate = round(approved / len(items) * 100, 1)
    if actor is not None:
        stats.my_queue = sum(1 for i in items if can_act(i, actor, ladder))
    return stats
