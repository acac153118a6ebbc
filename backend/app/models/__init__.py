from app.models.approval import ApprovalItemRecord, ApprovalHistoryRecord
from app.models.audit import AuditLog

__all__ = [
    "ApprovalItemRecord", "ApprovalHistoryRecord",
    "AuditLog",
]
