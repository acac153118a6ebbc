"""Fire-and-forget notification dispatch.

Runs after a transition has been committed. Delivery is queued as a Celery
task that re-reads the item; a broker outage is logged and dropped, never
raised to the caller and never able to undo the transition.
"""
import logging

from app.core.config import settings
from app.rules.approval_rules import get_rule_book
from app.rules.types import ApprovalItem, HistoryAction, HistoryEntry

logger = logging.getLogger(__name__)


def approver_label(level: int) -> str:
    """Role holding ``level`` on the live ladder, or "level N" if the ladder no longer has it."""
    ladder = get_rule_book().ladder
    if 1 <= level <= len(ladder):
        return ladder.role_at(level)
    return f"level {level}"


def deliver(item: ApprovalItem, action: HistoryAction | str) -> None:
    """Send whatever emails a committed transition calls for (synchronous)."""
    from app.services import email as email_svc

    if HistoryAction(action) is HistoryAction.commented:
        return

    if item.is_terminal:
        decided_by = item.history[-1].actor_name if item.history else "system"
        email_svc.send_decision_email(item, decided_by=decided_by)
        return

    base_url = settings.APP_BASE_URL.rstrip("/")
    email_svc.send_approval_request_email(
        item,
        approver_role=approver_label(item.current_level),
        approval_url=f"{base_url}/api/v1/approvals/{item.id}",
    )


def dispatch(item: ApprovalItem, entry: HistoryEntry) -> None:
    """Queue delivery on the worker. Never raises."""
    if entry.action is HistoryAction.commented:
        return
    try:
        from app.workers.notification_tasks import send_approval_notification
        send_approval_notification.delay(str(item.id), entry.action.value)
    except Exception as exc:
        logger.warning("Notification for item %s not queued (transition kept): %s", item.id, exc)
