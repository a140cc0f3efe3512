"""
Notification and audit emitters (fire-and-forget side effects).

Contract:
    ``NotificationEmitter.notify(message)`` and ``AuditEmitter.record(entry)``
    are invoked AFTER a billing record is committed.  Their failures never
    roll the record back; the creator reports them and moves on.

Architecture: rent_billing/services.  The SQL emitters write through their
    own session so their transaction is independent of the record's.

Message wording follows what tenants and operators already see in the
surrounding property-management system.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.orm import Session

from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.logging_config import get_logger

from rent_billing.domain.types import BillingPeriod, BillingRecord, Lease
from rent_billing.models.billing import ActivityLogModel, NotificationModel

logger = get_logger("billing.emitters")

NOTIFY_TYPE_RENT = "rent"
ENTITY_TYPE_RENT = "rent"

DEFAULT_CURRENCY_SYMBOL = "₹"


# =============================================================================
# Payloads
# =============================================================================


@dataclass(frozen=True)
class NotificationMessage:
    """Payload for the notification service."""

    tenant_id: UUID
    title: str
    description: str
    notify_type: str = NOTIFY_TYPE_RENT


@dataclass(frozen=True)
class AuditEntry:
    """Payload for the audit / activity log."""

    tenant_id: UUID
    action: str  # "Create" | "Update" | "Delete"
    title: str
    description: str
    entity_type: str = ENTITY_TYPE_RENT
    record_id: UUID | None = None


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class NotificationEmitter(Protocol):
    def notify(self, message: NotificationMessage) -> None: ...


@runtime_checkable
class AuditEmitter(Protocol):
    def record(self, entry: AuditEntry) -> None: ...


# =============================================================================
# Message builders
# =============================================================================


def format_due_date(due_date: date) -> str:
    """e.g. ``Sun Nov 30 2025``."""
    return due_date.strftime("%a %b %d %Y")


def format_amount(amount: Decimal | None, currency_symbol: str) -> str:
    if amount is None:
        return "the agreed amount"
    return f"{currency_symbol}{amount:,.2f}"


def _unit_label(lease: Lease) -> str:
    if lease.property_name:
        return f"{lease.unit_ref} ({lease.property_name})"
    return str(lease.unit_ref)


def build_rent_due_notification(
    record: BillingRecord,
    lease: Lease | None,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> NotificationMessage:
    """Tenant-facing reminder for a newly created billing record."""
    due = format_due_date(record.due_date)
    title = f"Rent Due Reminder {BillingPeriod.of(record.due_date).label()}"

    if lease is None:
        description = (
            f"Your rent is due on {due}. "
            "Please make the payment on time to avoid penalties."
        )
    else:
        greeting = f"{lease.tenant_name}, your" if lease.tenant_name else "Your"
        description = (
            f"{greeting} rent amount of "
            f"{format_amount(lease.rent_amount, currency_symbol)} for "
            f"{_unit_label(lease)} is due on {due}. "
            "Please make the payment on time to avoid penalties."
        )

    return NotificationMessage(
        tenant_id=record.tenant_id,
        title=title,
        description=description,
    )


def build_creation_audit(
    record: BillingRecord,
    lease: Lease | None,
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL,
) -> AuditEntry:
    """Operator-facing activity entry for a newly created billing record."""
    due = format_due_date(record.due_date)
    if lease is None:
        description = f"Tenant {record.tenant_id} has rent due {due}"
    else:
        who = lease.tenant_name or f"Tenant {record.tenant_id}"
        description = (
            f"{who} {lease.unit_ref} has rent due {due} "
            f"({format_amount(lease.rent_amount, currency_symbol)})"
        )

    return AuditEntry(
        tenant_id=record.tenant_id,
        action="Create",
        title="Rent payment due is created",
        description=description,
        record_id=record.record_id,
    )


# =============================================================================
# SQL-backed emitters
# =============================================================================


class SqlNotificationEmitter:
    """Writes notifications to the ``notifications`` table."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        actor_id: UUID,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._actor_id = actor_id
        self._clock = clock or SystemClock()

    def notify(self, message: NotificationMessage) -> None:
        now = self._clock.now()
        with self._session_factory() as session:
            session.add(
                NotificationModel(
                    tenant_id=message.tenant_id,
                    title=message.title,
                    description=message.description,
                    notify_type=message.notify_type,
                    created_at=now,
                    updated_at=now,
                    created_by_id=self._actor_id,
                )
            )
            session.commit()


class SqlAuditEmitter:
    """Writes activity entries to the ``activity_log`` table."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        actor_id: UUID,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._actor_id = actor_id
        self._clock = clock or SystemClock()

    def record(self, entry: AuditEntry) -> None:
        now = self._clock.now()
        with self._session_factory() as session:
            session.add(
                ActivityLogModel(
                    tenant_id=entry.tenant_id,
                    action=entry.action,
                    entity_type=entry.entity_type,
                    title=entry.title,
                    description=entry.description,
                    record_id=entry.record_id,
                    created_at=now,
                    updated_at=now,
                    created_by_id=self._actor_id,
                )
            )
            session.commit()


class LoggingNotificationEmitter:
    """Emits notifications as structured log lines only.

    Used when no notification sink is configured.
    """

    def notify(self, message: NotificationMessage) -> None:
        logger.info(
            "rent_notification",
            extra={
                "tenant_id": str(message.tenant_id),
                "title": message.title,
                "notify_type": message.notify_type,
            },
        )
