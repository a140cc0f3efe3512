"""
Tests for rent_billing.domain.window -- pure billing window calculation.

Covers the advance window, the not-yet-eligible case, month and year
rollover, last-day-of-month clamping, and the lease required-fields
contract.  No database.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from rent_kernel.exceptions import LeaseValidationError

from rent_billing.domain.types import Lease
from rent_billing.domain.window import (
    LEAD_DAYS,
    clamp_due_date,
    compute_billing_window,
    days_in_month,
    previous_month,
    validate_lease,
)


# =============================================================================
# Calendar helpers
# =============================================================================


class TestCalendarHelpers:
    @pytest.mark.parametrize(
        "year, month, expected",
        [
            (2023, 2, 28),
            (2024, 2, 29),
            (1900, 2, 28),
            (2000, 2, 29),
            (2025, 4, 30),
            (2025, 12, 31),
        ],
    )
    def test_days_in_month(self, year, month, expected):
        assert days_in_month(year, month) == expected

    def test_clamp_keeps_valid_day(self):
        assert clamp_due_date(2025, 11, 30) == date(2025, 11, 30)

    def test_clamp_to_thirty_day_month(self):
        assert clamp_due_date(2025, 11, 31) == date(2025, 11, 30)

    def test_previous_month_rolls_year(self):
        assert previous_month(2026, 1) == (2025, 12)
        assert previous_month(2025, 7) == (2025, 6)


# =============================================================================
# compute_billing_window -- documented scenarios
# =============================================================================


class TestAdvanceWindow:
    def test_due_in_exactly_lead_days_is_eligible(self):
        window = compute_billing_window(30, date(2025, 11, 25))

        assert window.eligible is True
        assert window.period.year == 2025
        assert window.period.month == 11
        assert window.due_date == date(2025, 11, 30)
        assert window.days_until_due == LEAD_DAYS
        assert window.creation_day == 25

    def test_due_in_ten_days_is_not_eligible(self):
        window = compute_billing_window(30, date(2025, 11, 20))

        assert window.eligible is False
        assert window.due_date == date(2025, 11, 30)
        assert window.days_until_due == 10

    def test_one_day_outside_window(self):
        window = compute_billing_window(30, date(2025, 11, 24))
        assert window.days_until_due == 6
        assert window.eligible is False

    def test_due_today_is_eligible(self):
        window = compute_billing_window(15, date(2025, 6, 15))
        assert window.days_until_due == 0
        assert window.eligible is True

    def test_past_due_in_same_month_is_catch_up(self):
        window = compute_billing_window(10, date(2025, 6, 28))
        assert window.due_date == date(2025, 6, 10)
        assert window.days_until_due == -18
        assert window.eligible is True

    def test_datetime_reduced_to_date(self):
        window = compute_billing_window(30, datetime(2025, 11, 25, 23, 59, 59))
        assert window.days_until_due == 5
        assert window.eligible is True


class TestRollover:
    def test_mid_year_rollover_is_catch_up(self):
        """Due day 3 on Jan 30: creation day -2 rolls back to December."""
        window = compute_billing_window(3, date(2026, 1, 30))

        assert window.billing_year == 2025
        assert window.billing_month == 12
        assert window.creation_day == 29
        assert window.due_date == date(2025, 12, 3)
        assert window.days_until_due < 0
        assert window.eligible is True

    def test_year_boundary_rollover(self):
        window = compute_billing_window(2, date(2026, 1, 1))

        assert window.billing_year == 2025
        assert window.billing_month == 12
        assert window.creation_day == 31 - 3
        assert window.due_date == date(2025, 12, 2)
        assert window.eligible is True

    def test_rollover_uses_previous_month_length(self):
        """March run with due day 5: creation day counts back from February."""
        window = compute_billing_window(5, date(2024, 3, 10))

        assert (window.billing_year, window.billing_month) == (2024, 2)
        assert window.creation_day == 29
        assert window.due_date == date(2024, 2, 5)

    def test_due_day_equal_to_lead_rolls_back(self):
        window = compute_billing_window(LEAD_DAYS, date(2025, 7, 1))
        assert window.billing_month == 6
        assert window.due_date == date(2025, 6, 5)

    def test_due_day_after_lead_stays_in_month(self):
        window = compute_billing_window(LEAD_DAYS + 1, date(2025, 7, 1))
        assert window.billing_month == 7
        assert window.due_date == date(2025, 7, 6)
        assert window.days_until_due == 5
        assert window.eligible is True


class TestClamping:
    def test_february_non_leap_year(self):
        window = compute_billing_window(31, date(2023, 2, 26))

        assert window.due_date == date(2023, 2, 28)
        assert window.days_until_due == 2
        assert window.eligible is True

    def test_february_leap_year(self):
        window = compute_billing_window(31, date(2024, 2, 26))

        assert window.due_date == date(2024, 2, 29)
        assert window.days_until_due == 3
        assert window.eligible is True

    def test_thirty_day_month(self):
        window = compute_billing_window(31, date(2025, 4, 1))
        assert window.due_date == date(2025, 4, 30)
        assert window.eligible is False

    def test_clamped_due_date_uses_target_period_length(self):
        """Due day 31 in a 30-day month never produces an invalid date."""
        window = compute_billing_window(31, date(2025, 6, 30))
        assert window.due_date == date(2025, 6, 30)
        assert window.days_until_due == 0


class TestInvalidDueDay:
    @pytest.mark.parametrize("due_day", [0, 32, -1, True, 3.0, "5", None])
    def test_out_of_range_or_wrong_type_rejected(self, due_day):
        with pytest.raises(LeaseValidationError) as exc_info:
            compute_billing_window(due_day, date(2025, 11, 25))
        assert exc_info.value.field == "due_day_of_month"
        assert exc_info.value.code == "LEASE_VALIDATION_FAILED"


# =============================================================================
# Properties
# =============================================================================


class TestWindowProperties:
    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        due_day=st.integers(min_value=1, max_value=31),
        today=st.dates(min_value=date(1990, 1, 1), max_value=date(2100, 12, 31)),
    )
    def test_window_invariants(self, due_day, today):
        window = compute_billing_window(due_day, today)

        # Valid calendar date in the reported period.
        assert window.due_date.year == window.billing_year
        assert window.due_date.month == window.billing_month
        assert window.due_date.day == min(
            due_day, days_in_month(window.billing_year, window.billing_month),
        )

        # Period is today's month or the one before.
        assert window.due_date <= today + timedelta(days=31)
        assert (window.billing_year, window.billing_month) in {
            (today.year, today.month),
            previous_month(today.year, today.month),
        }

        # Eligibility is bounded on the early side only.
        assert window.days_until_due == (window.due_date - today).days
        assert window.eligible == (window.days_until_due <= LEAD_DAYS)

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(today=st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31)))
    def test_due_days_within_lead_always_catch_up(self, today):
        """Due days 1..5 always target the previous month, which has passed."""
        for due_day in range(1, LEAD_DAYS + 1):
            window = compute_billing_window(due_day, today)
            assert window.due_date < today.replace(day=1)
            assert window.eligible is True


# =============================================================================
# validate_lease
# =============================================================================


def _lease(**overrides) -> Lease:
    values = dict(
        tenant_id=uuid4(),
        due_day_of_month=30,
        rent_amount=Decimal("15000"),
        unit_ref="A-101",
        tenant_name="Asha Rao",
    )
    values.update(overrides)
    return Lease(**values)


class TestValidateLease:
    def test_complete_lease_passes(self):
        validate_lease(_lease())

    def test_zero_rent_is_allowed(self):
        validate_lease(_lease(rent_amount=Decimal("0")))

    @pytest.mark.parametrize("name", [None, ""])
    def test_missing_tenant_name_is_allowed(self, name):
        validate_lease(_lease(tenant_name=name))

    @pytest.mark.parametrize(
        "field, value",
        [
            ("tenant_id", None),
            ("due_day_of_month", None),
            ("rent_amount", None),
            ("unit_ref", None),
            ("unit_ref", ""),
        ],
    )
    def test_missing_required_field(self, field, value):
        with pytest.raises(LeaseValidationError) as exc_info:
            validate_lease(_lease(**{field: value}))
        assert exc_info.value.field == field
        assert exc_info.value.reason == "is required"

    def test_negative_rent_rejected(self):
        with pytest.raises(LeaseValidationError) as exc_info:
            validate_lease(_lease(rent_amount=Decimal("-1")))
        assert exc_info.value.field == "rent_amount"

    def test_due_day_out_of_range(self):
        lease = _lease(due_day_of_month=40)
        with pytest.raises(LeaseValidationError) as exc_info:
            validate_lease(lease)
        assert exc_info.value.field == "due_day_of_month"
        assert exc_info.value.tenant_id == str(lease.tenant_id)

    def test_error_message_names_tenant_and_field(self):
        lease = _lease(due_day_of_month=None)
        with pytest.raises(LeaseValidationError, match="due_day_of_month is required"):
            validate_lease(lease)
