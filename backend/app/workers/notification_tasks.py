"""Celery task delivering approval emails after a committed transition."""
import logging
import uuid

from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.workers.notification_tasks.send_approval_notification")
def send_approval_notification(item_id: str, action: str):
    """Re-read the item and send the emails its latest transition calls for.

    Args:
        item_id: UUID string of the approval item.
        action: History action value that triggered the notification.

    Returns:
        dict with a ``status`` of "sent" or "error".
    """
    try:
        from app.db.session import SessionLocal
        from app.db.sql_repository import SqlItemRepository
        from app.services import notifications

        item = SqlItemRepository(SessionLocal).get(uuid.UUID(item_id))
        notifications.deliver(item, action)
        return {"status": "sent", "item_id": item_id, "action": action}

    except Exception as exc:
        logger.exception("send_approval_notification failed for item %s: %s", item_id, exc)
        return {"status": "error", "item_id": item_id, "error": str(exc)}
