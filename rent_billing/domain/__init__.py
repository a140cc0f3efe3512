"""
rent_billing.domain -- Pure types, window calculation, and schedule evaluation.

ZERO I/O.  All types are frozen dataclasses.
"""

from rent_billing.domain.schedule import (
    DEFAULT_SCHEDULE,
    CronSpec,
    TriggerSchedule,
    compute_next_run,
    parse_cron,
    should_fire,
)
from rent_billing.domain.types import (
    BillingPeriod,
    BillingRecord,
    BillingWindow,
    CreationResult,
    FailedTenant,
    Lease,
    RecordStatus,
    RunSummary,
    RunTrigger,
    SideEffectFailure,
    TenantOutcome,
    TenantResult,
    TenantType,
)
from rent_billing.domain.window import (
    LEAD_DAYS,
    clamp_due_date,
    compute_billing_window,
    days_in_month,
    validate_lease,
)

__all__ = [
    "DEFAULT_SCHEDULE",
    "LEAD_DAYS",
    "BillingPeriod",
    "BillingRecord",
    "BillingWindow",
    "CreationResult",
    "CronSpec",
    "FailedTenant",
    "Lease",
    "RecordStatus",
    "RunSummary",
    "RunTrigger",
    "SideEffectFailure",
    "TenantOutcome",
    "TenantResult",
    "TenantType",
    "TriggerSchedule",
    "clamp_due_date",
    "compute_billing_window",
    "compute_next_run",
    "days_in_month",
    "parse_cron",
    "should_fire",
    "validate_lease",
]
