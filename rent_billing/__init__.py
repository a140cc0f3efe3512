"""
rent_billing -- Recurring rent billing record generation.

Creates one pending billing record per active rent lease per monthly due
date, a few days ahead of the due date, and catches up on periods whose
due date passed without a record.  Runs daily from an in-process trigger
and on demand for backfill.

Architecture:
    rent_billing/ is a top-level package above rent_kernel and rent_config.
    Nothing in rent_kernel imports from rent_billing (create_tables does so
    lazily, only to register the models).

Invariants:
    RB-1  At-most-once record per (tenant, due date), enforced by a unique
          constraint and a single conditional insert
    RB-2  Due dates are valid calendar dates (last-day-of-month clamp)
    RB-3  Early bound only: created at most 5 days ahead, any time after
    RB-4  The lease snapshot is read once per run and never mutated
    RB-5  Notification and audit are fire-and-forget, after commit
    RB-6  Schedule evaluation is pure
    RB-7  Clock injection (no datetime.now() calls in services)
    RB-8  Per-tenant isolation within a run
    RB-9  Storage failure aborts the run
    RB-10 Cooperative timeout and graceful shutdown
"""
