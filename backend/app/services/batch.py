"""Batch processor — one action applied to many items, outcome per item.

Not atomic: each member goes through the single-item path and succeeds or
fails on its own. Nothing is ever dropped from the result.
"""
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.core.config import settings
from app.core.exceptions import ApprovalError, BatchNotAllowed
from app.db.repository import ItemRepository
from app.rules.approval_rules import RuleBook, get_rule_book
from app.rules.types import Action, Actor
from app.services import approval as approval_svc

logger = logging.getLogger(__name__)


@dataclass
class BatchFailure:
    item_id: uuid.UUID
    code: str
    message: str


@dataclass
class BatchResult:
    succeeded: list[uuid.UUID] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)


def batch_act(
    repo: ItemRepository,
    item_ids,
    actor: Actor,
    action: Action | str,
    comment: str | None = None,
    now: datetime | None = None,
    rule_book: RuleBook | None = None,
    max_workers: int | None = None,
) -> BatchResult:
    """Apply ``action`` to each item independently.

    Duplicate ids are processed once. Results keep input order.

    Raises:
        ValueError: more than BATCH_MAX_ITEMS ids.
    """
    action = Action(action)
    now = now or datetime.now(timezone.utc)
    rule_book = rule_book or get_rule_book()
    max_workers = max_workers or settings.BATCH_MAX_WORKERS

    ids = list(dict.fromkeys(item_ids))
    if len(ids) > settings.BATCH_MAX_ITEMS:
        raise ValueError(
            f"Batch limit is {settings.BATCH_MAX_ITEMS} items per request (got {len(ids)})."
        )

    def _one(item_id: uuid.UUID) -> BatchFailure | None:
        try:
            item = repo.get(item_id)
            if not item.allow_batch:
                raise BatchNotAllowed(item_id, item.tier)
            approval_svc.act(
                repo, item_id, actor, action,
                comment=comment, expected_version=item.version,
                now=now, rule_book=rule_book,
            )
        except ApprovalError as exc:
            return BatchFailure(item_id=item_id, code=exc.code, message=exc.message)
        except Exception as exc:
            logger.exception("batch_act: unexpected error on item %s", item_id)
            return BatchFailure(item_id=item_id, code="INTERNAL_ERROR", message=str(exc))
        return None

    if max_workers > 1 and len(ids) > 1:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(ids))) as pool:
            outcomes = list(pool.map(_one, ids))
    else:
        outcomes = [_one(i) for i in ids]

    result = BatchResult()
    for item_id, failure in zip(ids, outcomes):
        if failure is None:
            result.succeeded.append(item_id)
        else:
            result.failed.append(failure)

    logger.info(
        "batch_act: action=%s actor=%s items=%d succeeded=%d failed=%d",
        action.value, actor.name, len(ids), len(result.succeeded), len(result.failed),
    )
    return result
