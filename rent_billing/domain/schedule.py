"""
Pure schedule evaluation for the daily billing trigger.

Contract:
    ``should_fire(schedule, as_of)`` and ``compute_next_run()`` are PURE --
    no I/O, no side effects.  The service reads ``next_run_at`` and the
    injected clock and decides whether to start a run.

Architecture: rent_billing/domain.  ZERO I/O.

Invariants enforced:
    RB-6 -- Schedule evaluation is pure.
    RB-7 -- All timestamps come from the caller (no datetime.now() calls).

Non-goals:
    Not a general cron library: 5 numeric fields only, no names (JAN, MON),
    no ``L`` / ``W`` / ``#`` extensions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

DEFAULT_SCHEDULE = "0 0 * * *"  # daily at midnight


# =============================================================================
# CronSpec (lightweight cron parser)
# =============================================================================


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression (minute hour day_of_month month day_of_week).

    Each field is a frozenset of valid integer values.
    Supports: *, values, lists, ranges (1-5), steps (*/5, 1-10/2).
    """

    minutes: frozenset[int] = field(default_factory=lambda: frozenset(range(60)))
    hours: frozenset[int] = field(default_factory=lambda: frozenset(range(24)))
    days_of_month: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 32)))
    months: frozenset[int] = field(default_factory=lambda: frozenset(range(1, 13)))
    days_of_week: frozenset[int] = field(default_factory=lambda: frozenset(range(7)))


def _parse_cron_field(field_str: str, min_val: int, max_val: int) -> frozenset[int]:
    """Parse a single cron field into a frozenset of valid values.

    Raises:
        ValueError: If the field is syntactically invalid or values out of range.
    """
    values: set[int] = set()

    for part in field_str.split(","):
        part = part.strip()
        if not part:
            raise ValueError(f"Empty element in cron field '{field_str}'")

        if "/" in part:
            range_part, step_str = part.split("/", 1)
            step = int(step_str)
            if step <= 0:
                raise ValueError(f"Step must be positive: {step}")

            if range_part == "*":
                start, end = min_val, max_val
            elif "-" in range_part:
                s, e = range_part.split("-", 1)
                start, end = int(s), int(e)
            else:
                start = int(range_part)
                end = max_val

            if start < min_val or end > max_val or start > end:
                raise ValueError(
                    f"Range {start}-{end} outside [{min_val}, {max_val}]"
                )
            values.update(range(start, end + 1, step))

        elif part == "*":
            values.update(range(min_val, max_val + 1))

        elif "-" in part:
            s, e = part.split("-", 1)
            start, end = int(s), int(e)
            if start > end:
                raise ValueError(f"Range start > end: {start}-{end}")
            if start < min_val or end > max_val:
                raise ValueError(
                    f"Range {start}-{end} outside [{min_val}, {max_val}]"
                )
            values.update(range(start, end + 1))

        else:
            v = int(part)
            if v < min_val or v > max_val:
                raise ValueError(
                    f"Value {v} outside range [{min_val}, {max_val}]"
                )
            values.add(v)

    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """Parse a 5-field cron expression into a CronSpec.

    Format: ``minute hour day_of_month month day_of_week``

    Raises:
        ValueError: If expression is malformed.
    """
    parts = expression.strip().split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )

    return CronSpec(
        minutes=_parse_cron_field(parts[0], 0, 59),
        hours=_parse_cron_field(parts[1], 0, 23),
        days_of_month=_parse_cron_field(parts[2], 1, 31),
        months=_parse_cron_field(parts[3], 1, 12),
        days_of_week=_parse_cron_field(parts[4], 0, 6),
    )


def matches_cron(spec: CronSpec, dt: datetime) -> bool:
    """Check if a datetime matches a cron spec (RB-6 pure).

    Cron convention: 0=Sunday, 1=Monday, ..., 6=Saturday.
    Python datetime.weekday(): 0=Monday, ..., 6=Sunday.
    """
    cron_dow = (dt.weekday() + 1) % 7
    return (
        dt.minute in spec.minutes
        and dt.hour in spec.hours
        and dt.day in spec.days_of_month
        and dt.month in spec.months
        and cron_dow in spec.days_of_week
    )


# =============================================================================
# Trigger schedule
# =============================================================================


@dataclass(frozen=True)
class TriggerSchedule:
    """Immutable state of the billing trigger.

    The service replaces it after every fire; nothing is persisted, since
    the billing records themselves are the only state shared across runs.
    """

    cron_expression: str = DEFAULT_SCHEDULE
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    is_active: bool = True


def should_fire(schedule: TriggerSchedule, as_of: datetime) -> bool:
    """Determine if the trigger should fire at the given time (RB-6 pure).

    Rules:
        - Inactive schedules never fire.
        - A schedule with no ``next_run_at`` has not been armed yet.
        - Fires once ``as_of >= next_run_at``, so a slot missed while a
          previous run was still going fires late instead of being lost.
    """
    if not schedule.is_active:
        return False

    if schedule.next_run_at is None:
        return False

    return as_of >= schedule.next_run_at


def compute_next_run(cron_expression: str, after: datetime) -> datetime:
    """Next datetime strictly after ``after`` matching the cron expression.

    Raises:
        ValueError: If the expression is malformed or never matches.
    """
    return _next_cron_match(parse_cron(cron_expression), after)


def _next_cron_match(spec: CronSpec, after: datetime) -> datetime:
    """Find the next datetime after ``after`` that matches the cron spec.

    Walks whole days that cannot match, then minute-by-minute within a
    candidate day.  Bounded to ~4 years so impossible specs (e.g.
    ``0 0 31 2 *``) terminate.

    Raises:
        ValueError: If no match is found within the bound.
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    limit = candidate + timedelta(days=366 * 4)

    while candidate < limit:
        cron_dow = (candidate.weekday() + 1) % 7
        if (
            candidate.month not in spec.months
            or candidate.day not in spec.days_of_month
            or cron_dow not in spec.days_of_week
        ):
            candidate = (candidate + timedelta(days=1)).replace(hour=0, minute=0)
            continue
        if candidate.hour not in spec.hours:
            candidate = (candidate + timedelta(hours=1)).replace(minute=0)
            continue
        if candidate.minute in spec.minutes:
            return candidate
        candidate += timedelta(minutes=1)

    raise ValueError(
        f"No cron match found within 4 years after {after}"
    )


def arm(schedule: TriggerSchedule, as_of: datetime) -> TriggerSchedule:
    """Return the schedule with ``next_run_at`` set to the first slot after ``as_of``."""
    return TriggerSchedule(
        cron_expression=schedule.cron_expression,
        next_run_at=compute_next_run(schedule.cron_expression, as_of),
        last_run_at=schedule.last_run_at,
        is_active=schedule.is_active,
    )


def record_fire(schedule: TriggerSchedule, fired_at: datetime) -> TriggerSchedule:
    """Return the schedule after a fire at ``fired_at``: last run set, re-armed."""
    return TriggerSchedule(
        cron_expression=schedule.cron_expression,
        next_run_at=compute_next_run(schedule.cron_expression, fired_at),
        last_run_at=fired_at,
        is_active=schedule.is_active,
    )
