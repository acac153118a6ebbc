import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class ApprovalItemRecord(Base, UUIDMixin, TimestampMixin):
    """A financial ticket moving through the tiered approval workflow."""

    __tablename__ = "approval_items"
    __table_args__ = (
        CheckConstraint("current_level >= 1 AND current_level <= max_level", name="level"),
        Index("ix_approval_items_status_due_at", "status", "due_at"),
    )

    reference: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="low")  # low, medium, high, urgent
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    contractor_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    submitted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    project_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    item_metadata: Mapped[dict] = mapped_column("metadata", JSON, nullable=False, default=dict)

    # Rule snapshot — never re-read from configuration after creation
    tier: Mapped[str] = mapped_column(String(100), nullable=False)
    rule_version: Mapped[str] = mapped_column(String(100), nullable=False)
    max_level: Mapped[int] = mapped_column(Integer, nullable=False)
    escalation_after_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    allow_batch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_signature: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    current_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, approved, rejected, escalated, expired
    escalation_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic concurrency token

    history: Mapped[list["ApprovalHistoryRecord"]] = relationship(
        "ApprovalHistoryRecord",
        back_populates="item",
        order_by="ApprovalHistoryRecord.sequence",
    )


class ApprovalHistoryRecord(Base, UUIDMixin, TimestampMixin):
    """Append-only audit trail entry; UPDATE/DELETE are revoked at the DB level."""

    __tablename__ = "approval_history"
    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_approval_history_item_sequence"),
    )

    item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("approval_items.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)  # approved, rejected, escalated, commented, expired
    acted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    time_spent_seconds: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    signature: Mapped[str | None] = mapped_column(Text, nullable=True)

    item: Mapped["ApprovalItemRecord"] = relationship("ApprovalItemRecord", back_populates="history")
