"""Audit log helper — append-only writes to audit_logs table."""
import json
import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    actor_name: str | None = None,
    actor_role: str | None = None,
    after: Any | None = None,
    rule_version: str | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry.

    Args:
        db: Sync SQLAlchemy session. The caller controls the transaction.
        action: Short verb, e.g. 'approval_item.created'.
        entity_type: Table/domain name, e.g. 'approval_item'.
        entity_id: PK of the affected record.
        actor_name: Who performed the action (None for system actions).
        actor_role: Role the actor held at the time.
        after: Dict snapshot of state after the action (JSON-serialisable).
        rule_version: Version of the approval rule book in force.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_name=actor_name,
        actor_role=actor_role,
        action=action,
        entity_type=entity_type,
        entity_id=uuid.UUID(str(entity_id)) if entity_id else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        rule_version=rule_version,
        notes=notes,
    )
    db.add(entry)
    db.flush()  # get id without committing; caller controls the transaction
    logger.debug("Audit: %s %s/%s", action, entity_type, entity_id)
    return entry
