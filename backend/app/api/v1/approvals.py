"""Approval workflow API endpoints.

  POST /approvals                    — intake: route a new item to its tier
  GET  /approvals                    — filtered list (status, category, priority,
                                       level, assigned_to_me, overdue, search)
  GET  /approvals/stats              — aggregate counts / values / time-to-decision
  GET  /approvals/{item_id}          — item detail with full history
  POST /approvals/{item_id}/actions  — approve | reject | escalate | comment
  POST /approvals/batch              — one action over many items

All endpoints take the actor from the bearer token. Engine errors are
rendered by the ApprovalError handler in app.main as {"detail", "code"}.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.core.config import settings
from app.core.deps import get_current_actor, get_repository, get_rules
from app.core.limiter import limiter
from app.db.repository import ItemRepository
from app.rules.approval_rules import RuleBook
from app.rules.guard import can_act
from app.rules.reporting import ItemFilters
from app.rules.types import Actor, ItemStatus, Priority
from app.schemas.approval import (
    ApprovalActionRequest,
    ApprovalItemCreate,
    ApprovalItemOut,
    ApprovalListResponse,
    ApprovalStatsOut,
    BatchActionRequest,
    BatchFailureOut,
    BatchResultOut,
)
from app.services import approval as approval_svc
from app.services import batch as batch_svc

logger = logging.getLogger(__name__)

router = APIRouter()

Repo = Annotated[ItemRepository, Depends(get_repository)]
Rules = Annotated[RuleBook, Depends(get_rules)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]


def _out(item, actor: Actor, rules: RuleBook, now: datetime) -> ApprovalItemOut:
    return ApprovalItemOut.from_item(item, now, can_act=can_act(item, actor, rules.ladder))


def _filters(
    status_: ItemStatus | None,
    category: str | None,
    priority: Priority | None,
    level: int | None,
    assigned_to_me: bool,
    overdue: bool,
    search: str | None,
    actor: Actor,
) -> ItemFilters:
    return ItemFilters(
        status=status_,
        category=category,
        priority=priority,
        level=level,
        assigned_to=actor if assigned_to_me else None,
        overdue=overdue,
        search=search,
    )


# ─── Intake ───

@router.post(
    "",
    response_model=ApprovalItemOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an approval item and route it to its tier",
)
def create_item(body: ApprovalItemCreate, repo: Repo, rules: Rules, actor: CurrentActor):
    item = approval_svc.create_item(
        repo,
        amount=body.amount,
        category=body.category,
        reference=body.reference,
        description=body.description,
        contractor_name=body.contractor_name,
        submitted_by=body.submitted_by or actor.name,
        project_code=body.project_code,
        attachments=body.attachments,
        metadata=body.metadata,
        priority=body.priority,
        rule_book=rules,
        created_by=actor,
    )
    return _out(item, actor, rules, datetime.now(timezone.utc))


# ─── List ───

@router.get(
    "",
    response_model=ApprovalListResponse,
    summary="List approval items with filters",
)
def list_items(
    repo: Repo,
    rules: Rules,
    actor: CurrentActor,
    status_: ItemStatus | None = Query(None, alias="status"),
    category: str | None = Query(None),
    priority: Priority | None = Query(None),
    level: int | None = Query(None, ge=1),
    assigned_to_me: bool = Query(False, description="Only items the caller can act on now"),
    overdue: bool = Query(False),
    search: str | None = Query(None, description="Reference, contractor or description"),
):
    now = datetime.now(timezone.utc)
    filters = _filters(status_, category, priority, level, assigned_to_me, overdue, search, actor)
    items = approval_svc.query(repo, filters, now=now, rule_book=rules)
    return ApprovalListResponse(
        items=[_out(i, actor, rules, now) for i in items],
        total=len(items),
    )


# ─── Stats ───

@router.get(
    "/stats",
    response_model=ApprovalStatsOut,
    summary="Aggregate approval statistics",
)
def get_stats(
    repo: Repo,
    rules: Rules,
    actor: CurrentActor,
    status_: ItemStatus | None = Query(None, alias="status"),
    category: str | None = Query(None),
    priority: Priority | None = Query(None),
    level: int | None = Query(None, ge=1),
    assigned_to_me: bool = Query(False),
    overdue: bool = Query(False),
    search: str | None = Query(None),
):
    filters = _filters(status_, category, priority, level, assigned_to_me, overdue, search, actor)
    stats = approval_svc.stats(repo, filters, actor=actor, rule_book=rules)
    mean = stats.mean_time_to_decision
    return ApprovalStatsOut(
        count_by_status=stats.count_by_status,
        total_open_value=stats.total_open_value,
        mean_time_to_decision_seconds=mean.total_seconds() if mean is not None else None,
        total=stats.total,
        total_value=stats.total_value,
        overdue=stats.overdue,
        urgent=stats.urgent,
        my_queue=stats.my_queue,
        approval_rate=stats.approval_rate,
    )


# ─── Batch ───

@router.post(
    "/batch",
    response_model=BatchResultOut,
    summary="Apply one action to many items (per-item outcomes)",
)
@limiter.limit(settings.BATCH_RATE_LIMIT)
def batch_action(
    request: Request,
    body: BatchActionRequest,
    repo: Repo,
    rules: Rules,
    actor: CurrentActor,
):
    try:
        result = batch_svc.batch_act(
            repo, body.item_ids, actor, body.action,
            comment=body.comment, rule_book=rules,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    return BatchResultOut(
        succeeded=result.succeeded,
        failed=[
            BatchFailureOut(item_id=f.item_id, code=f.code, message=f.message)
            for f in result.failed
        ],
    )


# ─── Detail ───

@router.get(
    "/{item_id}",
    response_model=ApprovalItemOut,
    summary="Get an approval item with its history",
)
def get_item(item_id: uuid.UUID, repo: Repo, rules: Rules, actor: CurrentActor):
    item = approval_svc.get_item(repo, item_id)
    return _out(item, actor, rules, datetime.now(timezone.utc))


# ─── Act ───

@router.post(
    "/{item_id}/actions",
    response_model=ApprovalItemOut,
    summary="Approve, reject, escalate or comment on an item",
)
def act_on_item(
    item_id: uuid.UUID,
    body: ApprovalActionRequest,
    repo: Repo,
    rules: Rules,
    actor: CurrentActor,
):
    item = approval_svc.act(
        repo,
        item_id,
        actor,
        body.action,
        comment=body.comment,
        signature=body.signature,
        expected_version=body.expected_version,
        rule_book=rules,
    )
    return _out(item, actor, rules, datetime.now(timezone.utc))
