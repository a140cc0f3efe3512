"""
ORM models for billing records and their fire-and-forget side effects.

Contract:
    BillingRecordModel persists one invoice per (tenant, due date).
    NotificationModel and ActivityLogModel back the default SQL emitters.

Architecture: rent_billing/models.  Imports from rent_kernel.db.base only.

Invariants enforced:
    RB-1 -- ``UNIQUE (tenant_id, due_date)`` on billing_records.  The
            constraint deliberately ignores ``is_deleted``: a soft-deleted
            period is never re-created.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from rent_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from rent_billing.domain.types import BillingRecord


BILLING_RECORD_UNIQUE = "uq_billing_records_tenant_due_date"


class BillingRecordModel(TrackedBase):
    """Persistent billing record (RB-1 uniqueness)."""

    __tablename__ = "billing_records"

    __table_args__ = (
        UniqueConstraint("tenant_id", "due_date", name=BILLING_RECORD_UNIQUE),
        Index("ix_billing_records_due_date", "due_date"),
        Index("ix_billing_records_status", "status"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def to_dto(self) -> BillingRecord:
        from rent_billing.domain.types import BillingRecord, RecordStatus

        return BillingRecord(
            record_id=self.id,
            tenant_id=self.tenant_id,
            due_date=self.due_date,
            status=RecordStatus(self.status),
            created_at=self.created_at,
            is_deleted=self.is_deleted,
            status_changed_at=self.status_changed_at,
        )


class NotificationModel(TrackedBase):
    """Tenant-facing notification written on record creation."""

    __tablename__ = "notifications"

    __table_args__ = (
        Index("ix_notifications_tenant", "tenant_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    notify_type: Mapped[str] = mapped_column(String(50), nullable=False)


class ActivityLogModel(TrackedBase):
    """Operator-facing activity log entry."""

    __tablename__ = "activity_log"

    __table_args__ = (
        Index("ix_activity_log_tenant", "tenant_id"),
        Index("ix_activity_log_entity", "entity_type", "action"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    record_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
