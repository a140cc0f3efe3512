"""
Pure billing window calculation.

Contract:
    ``compute_billing_window(due_day_of_month, today)`` maps a lease's
    due-day-of-month and the run date to the billing period, the concrete
    due date, and whether a record may be created today.  PURE -- no I/O,
    no clock reads (the caller passes ``today``).

Architecture: rent_billing/domain.  ZERO I/O.

Invariants enforced:
    RB-2 -- Due dates are valid calendar dates: a due day beyond the target
            month's length is clamped to that month's last day, using the
            *target* period's length (after any rollback).
    RB-3 -- Eligibility is bounded on the early side only: a record may be
            created up to LEAD_DAYS before the due date, and at any time
            after it (catch-up creation).
"""

from __future__ import annotations

import calendar
from datetime import date, datetime

from rent_billing.domain.types import BillingWindow, Lease
from rent_kernel.exceptions import LeaseValidationError

LEAD_DAYS = 5

MIN_DUE_DAY = 1
MAX_DUE_DAY = 31


def days_in_month(year: int, month: int) -> int:
    """Number of days in (year, month), leap years included."""
    return calendar.monthrange(year, month)[1]


def clamp_due_date(year: int, month: int, due_day_of_month: int) -> date:
    """Build the due date for (year, month), clamping to the last day (RB-2)."""
    return date(year, month, min(due_day_of_month, days_in_month(year, month)))


def previous_month(year: int, month: int) -> tuple[int, int]:
    """(year, month) of the preceding month; January rolls to December."""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def compute_billing_window(
    due_day_of_month: int,
    today: date | datetime,
    lead_days: int = LEAD_DAYS,
) -> BillingWindow:
    """Compute the billing period, due date, and eligibility (pure).

    Rules:
        - ``creation_day = due_day - lead_days``.
        - ``creation_day > 0``: the period is today's month.
        - ``creation_day <= 0``: the period rolls back one month and
          ``creation_day`` is counted back from that month's end.
        - ``days_until_due`` is the whole-day distance from ``today`` to the
          due date; negative once the due date has passed.
        - ``eligible`` iff ``days_until_due <= lead_days``.

    A ``datetime`` is reduced to its calendar date.  Against a due date at
    midnight, the ceiling of the fractional day difference equals the plain
    date difference, so the result is the same.

    Raises:
        LeaseValidationError: If ``due_day_of_month`` is outside 1..31.
    """
    if isinstance(today, datetime):
        today = today.date()

    if (
        isinstance(due_day_of_month, bool)
        or not isinstance(due_day_of_month, int)
        or not MIN_DUE_DAY <= due_day_of_month <= MAX_DUE_DAY
    ):
        raise LeaseValidationError(
            None,
            "due_day_of_month",
            f"must be an integer in {MIN_DUE_DAY}..{MAX_DUE_DAY}, "
            f"got {due_day_of_month!r}",
        )

    creation_day = due_day_of_month - lead_days
    year, month = today.year, today.month

    if creation_day <= 0:
        year, month = previous_month(year, month)
        creation_day = days_in_month(year, month) + creation_day

    due_date = clamp_due_date(year, month, due_day_of_month)
    days_until_due = (due_date - today).days

    return BillingWindow(
        billing_year=year,
        billing_month=month,
        due_date=due_date,
        eligible=days_until_due <= lead_days,
        creation_day=creation_day,
        days_until_due=days_until_due,
    )


def validate_lease(lease: Lease) -> None:
    """Required-fields contract for a lease entering the calculator.

    A missing field fails fast instead of being defaulted to zero or empty.
    The tenant name is display-only and may be absent.

    Raises:
        LeaseValidationError: On the first missing or invalid field.
    """
    tenant = str(lease.tenant_id) if lease.tenant_id is not None else None

    if lease.tenant_id is None:
        raise LeaseValidationError(None, "tenant_id", "is required")
    if lease.due_day_of_month is None:
        raise LeaseValidationError(tenant, "due_day_of_month", "is required")
    if (
        isinstance(lease.due_day_of_month, bool)
        or not isinstance(lease.due_day_of_month, int)
        or not MIN_DUE_DAY <= lease.due_day_of_month <= MAX_DUE_DAY
    ):
        raise LeaseValidationError(
            tenant,
            "due_day_of_month",
            f"must be an integer in {MIN_DUE_DAY}..{MAX_DUE_DAY}, "
            f"got {lease.due_day_of_month!r}",
        )
    if lease.rent_amount is None:
        raise LeaseValidationError(tenant, "rent_amount", "is required")
    if lease.rent_amount < 0:
        raise LeaseValidationError(
            tenant, "rent_amount", f"must not be negative, got {lease.rent_amount}"
        )
    if not lease.unit_ref:
        raise LeaseValidationError(tenant, "unit_ref", "is required")
