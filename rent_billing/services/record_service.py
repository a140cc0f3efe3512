"""
BillingRecordService -- Maintenance of billing records after creation.

Contract:
    ``mark_status()`` moves a record along the external part of its
    lifecycle, ``soft_delete()`` hides it, and the read methods return
    immutable ``BillingRecord`` snapshots.  Each call is its own unit of
    work, committed here.

Architecture: rent_billing/services.  Uses rent_billing.models and the
    audit emitter.

Invariants enforced:
    RB-1 -- Soft deletion keeps the row, so the (tenant, due date) key stays
            taken and the engine never re-creates a deleted period.
    RB-7 -- All timestamps from injected Clock.

Failure modes:
    - BillingRecordNotFoundError if the record id is unknown.
    - InvalidStatusTransitionError for any transition outside the table
      below, including changes to a deleted record.
    - StorageError if the store is unreachable.
"""

from __future__ import annotations

from datetime import date
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from rent_kernel.db.errors import storage_errors
from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.exceptions import (
    BillingRecordNotFoundError,
    InvalidStatusTransitionError,
)
from rent_kernel.logging_config import get_logger

from rent_billing.domain.types import BillingPeriod, BillingRecord, RecordStatus
from rent_billing.domain.window import days_in_month
from rent_billing.models.billing import BillingRecordModel
from rent_billing.services.emitters import AuditEmitter, AuditEntry, format_due_date

logger = get_logger("billing.records")


# Allowed status transitions.  PENDING is engine-owned; the rest is external.
_TRANSITIONS: dict[RecordStatus, frozenset[RecordStatus]] = {
    RecordStatus.PENDING: frozenset({RecordStatus.PAID, RecordStatus.OVERDUE}),
    RecordStatus.OVERDUE: frozenset({RecordStatus.PAID}),
    RecordStatus.PAID: frozenset(),
}


class BillingRecordService:
    """Status changes, soft deletion, and lookups for billing records.

    Non-goals:
        - Does NOT create records -- see IdempotentInvoiceCreator.
        - Does NOT record payment amounts.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        audit_emitter: AuditEmitter | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._auditor = audit_emitter

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def mark_status(
        self,
        record_id: UUID,
        status: RecordStatus | str,
        actor_id: UUID,
    ) -> BillingRecord:
        """Move a record to ``status``.

        Raises:
            BillingRecordNotFoundError: Unknown record id.
            InvalidStatusTransitionError: Transition not allowed.
        """
        target = RecordStatus(status)
        now = self._clock.now()

        with storage_errors("mark_billing_record_status"):
            with self._session_factory() as session:
                model = self._load(session, record_id)
                current = RecordStatus(model.status)

                if model.is_deleted or target not in _TRANSITIONS[current]:
                    from_status = "deleted" if model.is_deleted else current.value
                    raise InvalidStatusTransitionError(
                        str(record_id), from_status, target.value,
                    )

                model.status = target.value
                model.status_changed_at = now
                model.updated_at = now
                model.updated_by_id = actor_id
                session.commit()
                record = model.to_dto()

        logger.info(
            "billing_record_status_changed",
            extra={
                "record_id": str(record_id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        self._audit(
            record,
            action="Update",
            title=f"Rent payment marked {target.value}",
            description=(
                f"Rent due {format_due_date(record.due_date)} moved from "
                f"{current.value} to {target.value}"
            ),
        )
        return record

    def soft_delete(self, record_id: UUID, actor_id: UUID) -> BillingRecord:
        """Hide a record.  Deleting an already deleted record is a no-op.

        Raises:
            BillingRecordNotFoundError: Unknown record id.
        """
        now = self._clock.now()

        with storage_errors("soft_delete_billing_record"):
            with self._session_factory() as session:
                model = self._load(session, record_id)
                if model.is_deleted:
                    return model.to_dto()

                model.is_deleted = True
                model.updated_at = now
                model.updated_by_id = actor_id
                session.commit()
                record = model.to_dto()

        logger.info(
            "billing_record_deleted",
            extra={"record_id": str(record_id)},
        )
        self._audit(
            record,
            action="Delete",
            title="Rent payment due is deleted",
            description=f"Rent due {format_due_date(record.due_date)} was deleted",
        )
        return record

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get(self, record_id: UUID) -> BillingRecord:
        """Fetch one record, deleted or not.

        Raises:
            BillingRecordNotFoundError: Unknown record id.
        """
        with storage_errors("get_billing_record"):
            with self._session_factory() as session:
                return self._load(session, record_id).to_dto()

    def list_for_period(
        self,
        year: int,
        month: int,
        include_deleted: bool = False,
    ) -> tuple[BillingRecord, ...]:
        """Records whose due date falls in (year, month), by due date."""
        period = BillingPeriod(year, month)
        first = date(period.year, period.month, 1)
        last = date(period.year, period.month, days_in_month(year, month))

        stmt = (
            select(BillingRecordModel)
            .where(
                BillingRecordModel.due_date >= first,
                BillingRecordModel.due_date <= last,
            )
            .order_by(BillingRecordModel.due_date, BillingRecordModel.tenant_id)
        )
        if not include_deleted:
            stmt = stmt.where(BillingRecordModel.is_deleted == False)  # noqa: E712

        with storage_errors("list_billing_records"):
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
                return tuple(row.to_dto() for row in rows)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _load(self, session: Session, record_id: UUID) -> BillingRecordModel:
        model = session.get(BillingRecordModel, record_id)
        if model is None:
            raise BillingRecordNotFoundError(str(record_id))
        return model

    def _audit(
        self,
        record: BillingRecord,
        *,
        action: str,
        title: str,
        description: str,
    ) -> None:
        if self._auditor is None:
            return
        try:
            self._auditor.record(
                AuditEntry(
                    tenant_id=record.tenant_id,
                    action=action,
                    title=title,
                    description=description,
                    record_id=record.record_id,
                )
            )
        except Exception:
            logger.warning(
                "audit_emit_failed",
                exc_info=True,
                extra={"record_id": str(record.record_id), "action": action},
            )
