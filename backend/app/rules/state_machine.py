"""Approval state machine — pure transitions over ApprovalItem.

    pending ──approve (level < max)──▶ pending @ level+1
    pending ──approve (level = max)──▶ approved
    pending ──reject─────────────────▶ rejected
    pending ──escalate───────────────▶ escalated @ min(level+1, max)
    escalated behaves exactly like pending at its (new) level
    open ──expire (scheduler only)───▶ expired
    comment: any non-terminal status, no state change

Nothing here touches storage or the clock: callers pass ``now`` and receive a
new item (version + 1) together with the single history entry to append.
"""
from dataclasses import replace
from datetime import datetime, timedelta

from app.core.exceptions import InvalidTransition, Unauthorized
from app.rules.guard import can_act, can_comment
from app.rules.roles import RoleLadder
from app.rules.types import (
    Action,
    Actor,
    ApprovalItem,
    HistoryAction,
    HistoryEntry,
    ItemStatus,
)


def transition(
    item: ApprovalItem,
    action: Action,
    actor: Actor,
    now: datetime,
    ladder: RoleLadder,
    comment: str | None = None,
    signature: str | None = None,
    enforce_guard: bool = True,
) -> tuple[ApprovalItem, HistoryEntry]:
    """Apply ``action`` to ``item`` and return ``(new_item, history_entry)``.

    Raises:
        InvalidTransition: item is closed, or the action is not valid in its status.
        Unauthorized: guard enforced and the actor may not act at this level.
    """
    action = Action(action)

    if item.is_terminal:
        raise InvalidTransition(item.id, item.status.value, action.value)

    if action is Action.comment:
        if enforce_guard and not can_comment(item, actor, ladder):
            raise Unauthorized(item.id, actor.role, item.current_level)
        return _comment(item, actor, now, comment)

    if enforce_guard and not can_act(item, actor, ladder):
        raise Unauthorized(item.id, actor.role, item.current_level)

    if action is Action.approve:
        return _approve(item, actor, now, comment, signature)
    if action is Action.reject:
        return _reject(item, actor, now, comment)
    return _escalate(item, actor, now, comment)


def expire(item: ApprovalItem, now: datetime, actor: Actor, reason: str | None = None):
    """Close an open item as expired. Only the escalation scheduler calls this."""
    if not item.is_open:
        raise InvalidTransition(item.id, item.status.value, "expire")
    entry = _entry(item, actor, HistoryAction.expired, now, reason)
    return _commit(item, entry, status=ItemStatus.expired, decided_at=now), entry


# ─── Individual transitions ───

def _approve(item, actor, now, comment, signature):
    entry = _entry(item, actor, HistoryAction.approved, now, comment, signature)
    if item.current_level >= item.max_level:
        return _commit(item, entry, status=ItemStatus.approved, decided_at=now), entry
    return _commit(
        item,
        entry,
        status=ItemStatus.pending,
        current_level=item.current_level + 1,
        due_at=now + item.escalation_after,
    ), entry


def _reject(item, actor, now, comment):
    entry = _entry(item, actor, HistoryAction.rejected, now, comment)
    return _commit(item, entry, status=ItemStatus.rejected, decided_at=now), entry


def _escalate(item, actor, now, comment):
    entry = _entry(
        item, actor, HistoryAction.escalated, now,
        comment or "Escalated for further review",
    )
    # At the top level the SLA window still restarts, so one due date
    # yields at most one automatic escalation.
    return _commit(
        item,
        entry,
        status=ItemStatus.escalated,
        current_level=min(item.current_level + 1, item.max_level),
        escalation_count=item.escalation_count + 1,
        due_at=now + item.escalation_after,
    ), entry


def _comment(item, actor, now, comment):
    entry = _entry(item, actor, HistoryAction.commented, now, comment)
    return _commit(item, entry), entry


# ─── Helpers ───

def _entry(item, actor, action, now, comment=None, signature=None) -> HistoryEntry:
    return HistoryEntry(
        sequence=len(item.history) + 1,
        level=item.current_level,
        actor_name=actor.name,
        actor_role=actor.role,
        action=action,
        timestamp=now,
        time_spent=max(now - item.last_activity_at, timedelta(0)),
        comments=comment,
        signature=signature,
    )


def _commit(item: ApprovalItem, entry: HistoryEntry, **changes) -> ApprovalItem:
    return replace(
        item,
        history=item.history + (entry,),
        last_activity_at=entry.timestamp,
        version=item.version + 1,
        **changes,
    )
