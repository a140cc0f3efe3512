"""
BillingRunDriver -- one billing run over the lease snapshot.

Contract:
    ``run_once(now)`` fetches the active lease snapshot, computes each
    lease's billing window, creates records for eligible leases through the
    idempotent creator, and returns a ``RunSummary``.  Scheduled and manual
    triggers call the same method.

Architecture: rent_billing/services.  Composes the snapshot provider, the
    pure window calculator, and the invoice creator.

Invariants enforced:
    RB-1 -- At-most-once creation (delegated to the creator's conditional
            insert, so overlapping runs are safe).
    RB-4 -- The snapshot is read once per run and never mutated.
    RB-7 -- Run date and timestamps from the injected Clock.
    RB-8 -- Per-tenant isolation: a failure for one lease is recorded in
            ``failed`` and never aborts the others.
    RB-9 -- StorageError aborts the run and propagates to the caller.
    RB-10 -- Cooperative timeout / cancellation, checked between tenants.
            Unreached tenants are counted as ``deferred``.

Failure modes:
    - StorageError from the snapshot fetch or from any tenant's write.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from uuid import uuid4

from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.exceptions import LeaseValidationError, StorageError
from rent_kernel.logging_config import LogContext, get_logger

from rent_billing.domain.types import (
    FailedTenant,
    Lease,
    RunSummary,
    RunTrigger,
    SideEffectFailure,
    TenantOutcome,
    TenantResult,
)
from rent_billing.domain.window import (
    LEAD_DAYS,
    compute_billing_window,
    validate_lease,
)
from rent_billing.services.invoice_creator import IdempotentInvoiceCreator
from rent_billing.services.lease_snapshot import LeaseSnapshotProvider

logger = get_logger("billing.driver")


class _RunControl:
    """Stop conditions shared by all workers of one run."""

    def __init__(
        self,
        timeout_seconds: float | None,
        cancel_event: threading.Event | None,
    ):
        self._deadline = (
            time.monotonic() + timeout_seconds if timeout_seconds else None
        )
        self._cancel_event = cancel_event
        self.abort_event = threading.Event()
        self.timed_out = False
        self.cancelled = False

    def should_stop(self) -> bool:
        if self.abort_event.is_set():
            return True
        if self._cancel_event is not None and self._cancel_event.is_set():
            self.cancelled = True
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self.timed_out = True
            return True
        return False


class BillingRunDriver:
    """Runs the billing engine once over the current lease snapshot.

    Contract:
        - ``run_once()`` returns a RunSummary or raises StorageError.
        - ``max_workers <= 1`` processes leases inline on the calling thread;
          otherwise a bounded thread pool is used.  Each tenant write uses
          its own session, so ordering between tenants does not matter.

    Non-goals:
        - Does NOT schedule itself -- see RentBillingService.
        - Does NOT backfill more than one period per lease per run.
    """

    def __init__(
        self,
        snapshot_provider: LeaseSnapshotProvider,
        creator: IdempotentInvoiceCreator,
        clock: Clock | None = None,
        max_workers: int = 1,
        run_timeout_seconds: float | None = None,
        lead_days: int = LEAD_DAYS,
    ):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self._snapshot_provider = snapshot_provider
        self._creator = creator
        self._clock = clock or SystemClock()
        self._max_workers = max_workers
        self._run_timeout = run_timeout_seconds
        self._lead_days = lead_days

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run_once(
        self,
        now: date | datetime | None = None,
        trigger: RunTrigger = RunTrigger.MANUAL,
        cancel_event: threading.Event | None = None,
        timeout_seconds: float | None = None,
    ) -> RunSummary:
        """Execute one billing run.

        Args:
            now: Run date (a datetime is reduced to its date).  Defaults to
                the injected clock, which is what scheduled runs use; manual
                backfills pass the date to bill for.
            trigger: Recorded on the summary and in log context.
            cancel_event: Cooperative cancellation signal.
            timeout_seconds: Overrides the driver's configured run timeout.

        Raises:
            StorageError: If the store is unreachable.  The run is aborted;
                writes already made are idempotent and stay valid.
        """
        run_id = uuid4()
        as_of = now if now is not None else self._clock.now()
        today = as_of.date() if isinstance(as_of, datetime) else as_of
        started_at = self._clock.now()
        start = time.monotonic()
        control = _RunControl(
            timeout_seconds if timeout_seconds is not None else self._run_timeout,
            cancel_event,
        )

        with LogContext.bind(run_id=str(run_id), trigger=trigger.value):
            logger.info(
                "billing_run_started",
                extra={
                    "as_of": today.isoformat(),
                    "max_workers": self._max_workers,
                },
            )

            try:
                leases = self._snapshot_provider.fetch_active_leases()
                results = self._process_all(leases, today, run_id, trigger, control)
            except StorageError:
                logger.exception(
                    "billing_run_aborted",
                    extra={"as_of": today.isoformat()},
                )
                raise

            summary = self._summarize(
                run_id=run_id,
                today=today,
                trigger=trigger,
                leases=leases,
                results=results,
                control=control,
                started_at=started_at,
                duration_ms=int((time.monotonic() - start) * 1000),
            )

            logger.info(
                "billing_run_completed",
                extra={
                    "as_of": today.isoformat(),
                    "total_leases": summary.total_leases,
                    "records_created": summary.created,
                    "skipped": summary.skipped,
                    "not_eligible": summary.not_eligible,
                    "failed": summary.failed_count,
                    "deferred": summary.deferred,
                    "timed_out": summary.timed_out,
                    "cancelled": summary.cancelled,
                    "duration_ms": summary.duration_ms,
                },
            )
            if summary.failed:
                logger.warning(
                    "billing_run_tenant_failures",
                    extra={
                        "failed_tenants": [
                            {"tenant_id": f.tenant_id, "error_code": f.error_code}
                            for f in summary.failed
                        ],
                    },
                )

        return summary

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _process_all(
        self,
        leases: tuple[Lease, ...],
        today: date,
        run_id,
        trigger: RunTrigger,
        control: _RunControl,
    ) -> list[TenantResult]:
        if self._max_workers == 1 or len(leases) <= 1:
            return [
                self._process_guarded(lease, today, run_id, trigger, control)
                for lease in leases
            ]

        with ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="rent-billing",
        ) as pool:
            futures = [
                pool.submit(
                    self._process_guarded, lease, today, run_id, trigger, control,
                )
                for lease in leases
            ]
            results: list[TenantResult] = []
            storage_error: StorageError | None = None
            for future in futures:
                try:
                    results.append(future.result())
                except StorageError as exc:
                    # Stop the remaining workers; keep draining futures.
                    control.abort_event.set()
                    if storage_error is None:
                        storage_error = exc

        if storage_error is not None:
            raise storage_error
        return results

    def _process_guarded(
        self,
        lease: Lease,
        today: date,
        run_id,
        trigger: RunTrigger,
        control: _RunControl,
    ) -> TenantResult:
        tenant_key = _tenant_key(lease)

        if control.should_stop():
            return TenantResult(tenant_id=tenant_key, outcome=TenantOutcome.DEFERRED)

        # Context vars do not follow work into pool threads; bind explicitly.
        with LogContext.bind(
            run_id=str(run_id), trigger=trigger.value, tenant_id=tenant_key,
        ):
            try:
                return self._process_lease(lease, today)
            except LeaseValidationError as exc:
                logger.warning(
                    "lease_validation_failed",
                    extra={"field": exc.field, "reason": exc.reason},
                )
                return TenantResult(
                    tenant_id=tenant_key,
                    outcome=TenantOutcome.FAILED,
                    error_code=exc.code,
                    error_message=str(exc),
                )
            except StorageError:
                raise
            except Exception as exc:
                logger.exception("tenant_processing_failed")
                return TenantResult(
                    tenant_id=tenant_key,
                    outcome=TenantOutcome.FAILED,
                    error_code="UNHANDLED_EXCEPTION",
                    error_message=str(exc),
                )

    def _process_lease(self, lease: Lease, today: date) -> TenantResult:
        tenant_key = _tenant_key(lease)
        validate_lease(lease)

        window = compute_billing_window(
            lease.due_day_of_month, today, lead_days=self._lead_days,
        )

        if not window.eligible:
            logger.debug(
                "billing_window_not_open",
                extra={
                    "due_date": window.due_date.isoformat(),
                    "days_until_due": window.days_until_due,
                },
            )
            return TenantResult(
                tenant_id=tenant_key,
                outcome=TenantOutcome.NOT_ELIGIBLE,
                due_date=window.due_date,
            )

        result = self._creator.create_if_absent(
            lease.tenant_id, window.due_date, lease=lease,
        )

        side_effects = tuple(
            SideEffectFailure(
                tenant_id=tenant_key,
                record_id=str(result.record.record_id),
                error_code=code,
                reason=reason,
            )
            for code, reason in (
                ("NOTIFICATION_FAILED", result.notification_error),
                ("AUDIT_FAILED", result.audit_error),
            )
            if reason is not None
        )

        return TenantResult(
            tenant_id=tenant_key,
            outcome=TenantOutcome.CREATED if result.created else TenantOutcome.SKIPPED,
            due_date=window.due_date,
            record_id=result.record.record_id,
            side_effect_failures=side_effects,
        )

    def _summarize(
        self,
        *,
        run_id,
        today: date,
        trigger: RunTrigger,
        leases: tuple[Lease, ...],
        results: list[TenantResult],
        control: _RunControl,
        started_at: datetime,
        duration_ms: int,
    ) -> RunSummary:
        def count(outcome: TenantOutcome) -> int:
            return sum(1 for r in results if r.outcome == outcome)

        failed = tuple(
            FailedTenant(
                tenant_id=r.tenant_id,
                reason=r.error_message or "",
                error_code=r.error_code or "UNKNOWN",
            )
            for r in results
            if r.outcome == TenantOutcome.FAILED
        )
        side_effect_failures = tuple(
            failure for r in results for failure in r.side_effect_failures
        )

        return RunSummary(
            run_id=run_id,
            as_of=today,
            trigger=trigger,
            created=count(TenantOutcome.CREATED),
            skipped=count(TenantOutcome.SKIPPED),
            failed=failed,
            not_eligible=count(TenantOutcome.NOT_ELIGIBLE),
            deferred=count(TenantOutcome.DEFERRED),
            timed_out=control.timed_out,
            cancelled=control.cancelled,
            side_effect_failures=side_effect_failures,
            total_leases=len(leases),
            started_at=started_at,
            completed_at=self._clock.now(),
            duration_ms=duration_ms,
            results=tuple(results),
        )


def _tenant_key(lease: Lease) -> str:
    return str(lease.tenant_id) if lease.tenant_id is not None else "<missing tenant_id>"
