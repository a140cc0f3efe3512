"""
IdempotentInvoiceCreator -- at-most-once billing record creation.

Contract:
    ``create_if_absent(tenant_id, due_date)`` creates a PENDING billing
    record for (tenant, due date) once and only once.  A second call, from
    this run, a later run, or an overlapping run, returns the existing
    record with ``created=False``.

Architecture: rent_billing/services.  Uses rent_billing.models and the
    emitters; one short session per call, committed here.

Invariants enforced:
    RB-1 -- At-most-once per (tenant_id, due_date).  The existence check and
            the insert are ONE statement (``INSERT ... ON CONFLICT DO
            NOTHING`` against the unique constraint), so two writers racing
            on the same key cannot both insert.
    RB-5 -- Side effects are not transactional with creation.  Emitters run
            after commit; their failure is reported, never rolled back.
    RB-7 -- All timestamps from the injected Clock.

Failure modes:
    - StorageError if the insert, lookup, or commit cannot reach the store.
    - NotificationError / AuditError are caught here and surfaced on the
      CreationResult; they never propagate.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from rent_kernel.db.errors import storage_errors
from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.exceptions import AuditError, NotificationError, StorageError
from rent_kernel.logging_config import get_logger

from rent_billing.domain.types import (
    BillingRecord,
    CreationResult,
    Lease,
    RecordStatus,
)
from rent_billing.models.billing import BillingRecordModel
from rent_billing.services.emitters import (
    DEFAULT_CURRENCY_SYMBOL,
    AuditEmitter,
    NotificationEmitter,
    build_creation_audit,
    build_rent_due_notification,
)

logger = get_logger("billing.creator")

_CONFLICT_COLUMNS = ("tenant_id", "due_date")


class IdempotentInvoiceCreator:
    """Creates billing records under the storage-level uniqueness constraint.

    Contract:
        - ``create_if_absent()`` returns ``CreationResult(created, record)``.
        - Emitters fire only when ``created`` is True.

    Non-goals:
        - Does NOT decide eligibility -- the driver calls the window
          calculator first.
        - Does NOT change status after creation.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        actor_id: UUID,
        clock: Clock | None = None,
        notification_emitter: NotificationEmitter | None = None,
        audit_emitter: AuditEmitter | None = None,
        currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
    ):
        self._session_factory = session_factory
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._notifier = notification_emitter
        self._auditor = audit_emitter
        self._currency_symbol = currency_symbol

    def create_if_absent(
        self,
        tenant_id: UUID,
        due_date: date,
        lease: Lease | None = None,
    ) -> CreationResult:
        """Create the (tenant, due date) record unless it already exists.

        Args:
            tenant_id: Tenant the record bills.
            due_date: Concrete, already-clamped due date.
            lease: Optional lease snapshot, used only to word the
                notification and audit entries.

        Raises:
            StorageError: If the store is unreachable.
        """
        now = self._clock.now()

        with storage_errors("create_billing_record"):
            with self._session_factory() as session:
                stmt = self._conditional_insert(
                    session,
                    {
                        "id": uuid4(),
                        "tenant_id": tenant_id,
                        "due_date": due_date,
                        "status": RecordStatus.PENDING.value,
                        "is_deleted": False,
                        "created_at": now,
                        "updated_at": now,
                        "created_by_id": self._actor_id,
                    },
                )
                # Core execution on the session's connection: plain rowcount,
                # no ORM bulk-insert handling.
                result = session.connection().execute(stmt)
                created = result.rowcount == 1

                model = session.execute(
                    select(BillingRecordModel).where(
                        BillingRecordModel.tenant_id == tenant_id,
                        BillingRecordModel.due_date == due_date,
                    )
                ).scalar_one()
                record = model.to_dto()
                session.commit()

        if not created:
            logger.info(
                "billing_record_exists",
                extra={
                    "record_id": str(record.record_id),
                    "due_date": due_date.isoformat(),
                    "status": record.status.value,
                    "is_deleted": record.is_deleted,
                },
            )
            return CreationResult(created=False, record=record)

        logger.info(
            "billing_record_created",
            extra={
                "record_id": str(record.record_id),
                "due_date": due_date.isoformat(),
            },
        )

        notification_error = self._emit_notification(record, lease)
        audit_error = self._emit_audit(record, lease)

        return CreationResult(
            created=True,
            record=record,
            notification_error=notification_error,
            audit_error=audit_error,
        )

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _conditional_insert(self, session: Session, values: dict[str, Any]):
        """Build the dialect's INSERT ... ON CONFLICT DO NOTHING statement."""
        dialect = session.get_bind().dialect.name
        table = BillingRecordModel.__table__

        if dialect == "postgresql":
            stmt = postgresql.insert(table)
        elif dialect == "sqlite":
            stmt = sqlite.insert(table)
        else:
            raise StorageError(
                "create_billing_record",
                f"dialect '{dialect}' has no supported conditional insert",
            )

        return stmt.values(**values).on_conflict_do_nothing(
            index_elements=list(_CONFLICT_COLUMNS),
        )

    def _emit_notification(
        self, record: BillingRecord, lease: Lease | None,
    ) -> str | None:
        if self._notifier is None:
            return None
        try:
            self._notifier.notify(
                build_rent_due_notification(record, lease, self._currency_symbol)
            )
        except Exception as exc:
            err = NotificationError(
                str(record.tenant_id), str(record.record_id), str(exc),
            )
            logger.warning(
                "notification_emit_failed",
                exc_info=(type(err), err, exc.__traceback__),
                extra={"record_id": str(record.record_id)},
            )
            return str(err)
        return None

    def _emit_audit(
        self, record: BillingRecord, lease: Lease | None,
    ) -> str | None:
        if self._auditor is None:
            return None
        try:
            self._auditor.record(
                build_creation_audit(record, lease, self._currency_symbol)
            )
        except Exception as exc:
            err = AuditError(
                str(record.tenant_id), str(record.record_id), str(exc),
            )
            logger.warning(
                "audit_emit_failed",
                exc_info=(type(err), err, exc.__traceback__),
                extra={"record_id": str(record.record_id)},
            )
            return str(err)
        return None
