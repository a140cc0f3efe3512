"""
Typed Exception Hierarchy for the Rent Billing Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The billing driver classifies every per-tenant outcome, and the run summary
must say *why* a tenant failed.  Parsing message strings for that is fragile,
so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (tenant_id, field, record_id, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from RentBillingError:

    RentBillingError (base)
    |
    +-- LeaseValidationError          per-tenant, run continues
    |
    +-- StorageError                  aborts the run
    |
    +-- SideEffectError               non-fatal, tenant still "created"
    |   +-- NotificationError
    |   +-- AuditError
    |
    +-- BillingRecordError
        +-- BillingRecordNotFoundError
        +-- InvalidStatusTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Lease           | LEASE_VALIDATION_FAILED     | Lease missing / invalid required field
----------------|-----------------------------|-----------------------------------------
Storage         | STORAGE_UNAVAILABLE         | Store unreachable or connection lost
----------------|-----------------------------|-----------------------------------------
Side effects    | NOTIFICATION_FAILED         | Notification emitter raised
                | AUDIT_FAILED                | Audit emitter raised
----------------|-----------------------------|-----------------------------------------
Record          | BILLING_RECORD_NOT_FOUND    | Record ID doesn't exist
                | INVALID_STATUS_TRANSITION   | e.g. paid -> pending

===============================================================================
HANDLING PATTERNS
===============================================================================

1. PER-TENANT ISOLATION:

    try:
        outcome = process(lease)
    except LeaseValidationError as e:
        failed.append(FailedTenant(e.tenant_id, str(e), e.code))
    # StorageError is NOT caught here -- it aborts the run.

2. DUPLICATES ARE NOT ERRORS:

    A record that already exists for (tenant, due date) is reported as a
    skipped outcome by the creator.  There is deliberately no exception
    type for it.
"""


class RentBillingError(Exception):
    """
    Base exception for all rent billing errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "RENT_BILLING_ERROR"


# Lease validation


class LeaseValidationError(RentBillingError):
    """A lease is missing a required field or carries an invalid value."""

    code: str = "LEASE_VALIDATION_FAILED"

    def __init__(self, tenant_id: str | None, field: str, reason: str):
        self.tenant_id = tenant_id
        self.field = field
        self.reason = reason
        super().__init__(
            f"Lease for tenant {tenant_id} is invalid: {field} {reason}"
        )


# Storage


class StorageError(RentBillingError):
    """The persistent store is unreachable or the connection was lost."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


# Side effects


class SideEffectError(RentBillingError):
    """Base exception for fire-and-forget emitter failures."""

    code: str = "SIDE_EFFECT_FAILED"

    def __init__(self, tenant_id: str, record_id: str, detail: str):
        self.tenant_id = tenant_id
        self.record_id = record_id
        self.detail = detail
        super().__init__(
            f"{self.__class__.__name__} for tenant {tenant_id} "
            f"(record {record_id}): {detail}"
        )


class NotificationError(SideEffectError):
    """The notification emitter failed after a record was created."""

    code: str = "NOTIFICATION_FAILED"


class AuditError(SideEffectError):
    """The audit emitter failed after a record was created."""

    code: str = "AUDIT_FAILED"


# Billing record maintenance


class BillingRecordError(RentBillingError):
    """Base exception for billing record maintenance errors."""

    code: str = "BILLING_RECORD_ERROR"


class BillingRecordNotFoundError(BillingRecordError):
    """Billing record with given ID was not found."""

    code: str = "BILLING_RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Billing record not found: {record_id}")


class InvalidStatusTransitionError(BillingRecordError):
    """Requested status change is not allowed from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, record_id: str, from_status: str, to_status: str):
        self.record_id = record_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move billing record {record_id} "
            f"from {from_status} to {to_status}"
        )
