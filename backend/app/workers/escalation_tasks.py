"""Celery task for periodic auto-escalation of overdue approval items."""
import logging

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.escalation_tasks.escalate_overdue_items")
def escalate_overdue_items():
    """Escalate every open item whose due date has passed.

    Runs every ESCALATION_TICK_SECONDS via beat. Overlapping runs are safe:
    each escalation is a compare-and-set on the item's version, so an item
    is escalated at most once per due date no matter how many ticks see it.
    """
    logger.info("escalate_overdue_items: starting tick")
    try:
        from app.db.session import SessionLocal
        from app.db.sql_repository import SqlItemRepository
        from app.services.escalation import run_escalation_tick

        return run_escalation_tick(SqlItemRepository(SessionLocal))

    except Exception as exc:
        logger.exception("escalate_overdue_items failed: %s", exc)
        return {"status": "error", "error": str(exc)}
