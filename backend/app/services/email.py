"""Email notification service — console mock for MVP (MAIL_ENABLED=False).

When MAIL_ENABLED is False, email content is printed to logs instead of
being sent via SMTP. Set MAIL_ENABLED=True to wire a real transport.
"""
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


def _amount_str(item) -> str:
    amount = getattr(item, "amount", None)
    return f"${float(amount):,.2f}" if amount is not None else "N/A"


# ─── Approval request email ───

def send_approval_request_email(item, approver_role: str, approval_url: str) -> None:
    """Send (or mock-log) an "action required" email to the role now holding the item.

    Args:
        item: ApprovalItem now waiting at a new level.
        approver_role: Role expected to act at the item's current level.
        approval_url: Link to the item in the approvals UI.
    """
    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== APPROVAL REQUEST EMAIL ===\n"
            "To: %s queue\n"
            "Subject: Action Required: %s — %s (level %d/%d, due %s)\n"
            "Review: %s\n"
            "==============================",
            approver_role,
            item.reference,
            _amount_str(item),
            item.current_level,
            item.max_level,
            item.due_at.isoformat(),
            approval_url,
        )
        return

    # Real SMTP path (not implemented in MVP)
    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for item %s.",
        item.reference,
    )
    logger.info(
        "APPROVAL EMAIL (unsent): item=%s role=%s amount=%s url=%s",
        item.reference, approver_role, _amount_str(item), approval_url,
    )


# ─── Final decision email ───

def send_decision_email(item, decided_by: str) -> None:
    """Tell the submitter that their item reached a terminal status."""
    recipient = item.submitted_by or "submitter"

    if not settings.MAIL_ENABLED:
        logger.info(
            "\n"
            "=== APPROVAL DECISION EMAIL ===\n"
            "To: %s\n"
            "Subject: %s %s — %s\n"
            "Decided by: %s\n"
            "===============================",
            recipient,
            item.reference,
            item.status.value.upper(),
            _amount_str(item),
            decided_by,
        )
        return

    logger.warning(
        "MAIL_ENABLED=True but SMTP transport is not configured. "
        "Falling back to console log for item %s.",
        item.reference,
    )
    logger.info(
        "DECISION EMAIL (unsent): item=%s status=%s to=%s",
        item.reference, item.status.value, recipient,
    )
