"""
rent_billing.domain.types -- Pure frozen dataclasses for the billing engine.

ZERO I/O.

Frozen dataclasses with enum status fields and tuples for immutable
collections.

Invariants enforced:
    RB-1 (at-most-once): BillingRecord identity is (tenant_id, due_date).
    RB-4 (snapshot immutability): Lease values are frozen; a run reads the
         snapshot once and never mutates it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


# =============================================================================
# Status enums
# =============================================================================


class RecordStatus(str, Enum):
    """Billing record status.

    The engine only ever writes PENDING.  PAID / OVERDUE are set by payment
    recording.
    """

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"


class TenantOutcome(str, Enum):
    """Classification of one tenant within one run."""

    CREATED = "created"  # New record persisted
    SKIPPED = "skipped"  # Record already existed for the period
    NOT_ELIGIBLE = "not_eligible"  # Due date more than lead window ahead
    FAILED = "failed"  # Validation or unexpected error
    DEFERRED = "deferred"  # Not reached (timeout / cancellation)


class RunTrigger(str, Enum):
    """What started a run.  Both share the same run_once contract."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"


class TenantType(str, Enum):
    """Tenant kinds in the lease registry.  Only RENT is billed monthly."""

    RENT = "rent"
    LEASE = "lease"


# =============================================================================
# Lease snapshot
# =============================================================================


@dataclass(frozen=True)
class Lease:
    """Read-only lease snapshot for one tenant.

    Fields are Optional because the registry can hold incomplete rows;
    ``validate_lease`` is the gate that turns a raw snapshot into something
    the calculator may use.
    """

    tenant_id: UUID | None
    due_day_of_month: int | None
    rent_amount: Decimal | None
    unit_ref: str | None
    tenant_name: str | None = None
    property_name: str | None = None
    active: bool = True
    tenant_type: TenantType = TenantType.RENT


# =============================================================================
# Billing window
# =============================================================================


@dataclass(frozen=True)
class BillingPeriod:
    """Derived (year, month).  Never persisted; recomputed from due date."""

    year: int
    month: int

    @classmethod
    def of(cls, due_date: date) -> BillingPeriod:
        return cls(year=due_date.year, month=due_date.month)

    def label(self) -> str:
        """Human label, e.g. ``November 2025``."""
        return date(self.year, self.month, 1).strftime("%B %Y")


@dataclass(frozen=True)
class BillingWindow:
    """Result of the billing window calculation for one lease on one day."""

    billing_year: int
    billing_month: int
    due_date: date
    eligible: bool
    creation_day: int
    days_until_due: int

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod(self.billing_year, self.billing_month)


# =============================================================================
# Billing records
# =============================================================================


@dataclass(frozen=True)
class BillingRecord:
    """Immutable snapshot of a persisted billing record (invoice)."""

    record_id: UUID
    tenant_id: UUID
    due_date: date
    status: RecordStatus
    created_at: datetime | None = None
    is_deleted: bool = False
    status_changed_at: datetime | None = None

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod.of(self.due_date)


@dataclass(frozen=True)
class CreationResult:
    """Result of ``IdempotentInvoiceCreator.create_if_absent()``.

    ``notification_error`` / ``audit_error`` are set when the record was
    created but a fire-and-forget side effect failed.
    """

    created: bool
    record: BillingRecord
    notification_error: str | None = None
    audit_error: str | None = None


# =============================================================================
# Run results
# =============================================================================


@dataclass(frozen=True)
class FailedTenant:
    """One failed tenant in a run summary."""

    tenant_id: str
    reason: str
    error_code: str


@dataclass(frozen=True)
class SideEffectFailure:
    """A created record whose notification or audit emission failed."""

    tenant_id: str
    record_id: str
    error_code: str
    reason: str


@dataclass(frozen=True)
class TenantResult:
    """Per-tenant outcome produced by the driver."""

    tenant_id: str
    outcome: TenantOutcome
    due_date: date | None = None
    record_id: UUID | None = None
    error_code: str | None = None
    error_message: str | None = None
    side_effect_failures: tuple[SideEffectFailure, ...] = ()


@dataclass(frozen=True)
class RunSummary:
    """Immutable result of one billing run.

    Returned by ``BillingRunDriver.run_once()`` for both scheduled and
    manual triggers.
    """

    run_id: UUID
    as_of: date
    trigger: RunTrigger
    created: int
    skipped: int
    failed: tuple[FailedTenant, ...] = ()
    not_eligible: int = 0
    deferred: int = 0
    timed_out: bool = False
    cancelled: bool = False
    side_effect_failures: tuple[SideEffectFailure, ...] = ()
    total_leases: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    results: tuple[TenantResult, ...] = field(default=(), repr=False)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready view for operators (omits per-tenant detail)."""
        return {
            "run_id": str(self.run_id),
            "as_of": self.as_of.isoformat(),
            "trigger": self.trigger.value,
            "created": self.created,
            "skipped": self.skipped,
            "not_eligible": self.not_eligible,
            "deferred": self.deferred,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "total_leases": self.total_leases,
            "failed": [
                {
                    "tenant_id": f.tenant_id,
                    "reason": f.reason,
                    "error_code": f.error_code,
                }
                for f in self.failed
            ],
            "side_effect_failures": [
                {
                    "tenant_id": s.tenant_id,
                    "record_id": s.record_id,
                    "error_code": s.error_code,
                    "reason": s.reason,
                }
                for s in self.side_effect_failures
            ],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "duration_ms": self.duration_ms,
        }
