"""
RentBillingService -- In-process daily trigger for billing runs.

Contract:
    Polls on a fixed interval, evaluates ``should_fire()`` against the
    cron schedule (pure, RB-6), and calls ``BillingRunDriver.run_once()``
    with the scheduled trigger.  Manual runs go through ``run_once()`` and
    share the driver's contract.

Architecture: rent_billing/services.  Uses rent_billing.domain.schedule for
    pure evaluation and rent_billing.services.driver for execution.

Invariants enforced:
    RB-6  -- Schedule evaluation is pure (should_fire).
    RB-7  -- All timestamps from injected Clock.
    RB-10 -- Graceful shutdown (the stop signal doubles as the run's
             cancellation event, checked between tenants).
"""

from __future__ import annotations

import threading
from datetime import date, datetime

from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.exceptions import StorageError
from rent_kernel.logging_config import get_logger

from rent_billing.domain.schedule import (
    DEFAULT_SCHEDULE,
    TriggerSchedule,
    arm,
    parse_cron,
    record_fire,
    should_fire,
)
from rent_billing.domain.types import RunSummary, RunTrigger
from rent_billing.services.driver import BillingRunDriver

logger = get_logger("billing.service")


class RentBillingService:
    """Daily billing trigger with start / stop / run_once.

    Contract:
        - ``tick()`` fires at most one scheduled run per due slot.
        - ``start()`` / ``stop()`` for background thread operation.
        - ``run_once()`` runs synchronously with the manual trigger.

    Non-goals:
        - NOT a distributed scheduler (no leader election).  Overlapping
          runs from several processes are safe because creation is
          idempotent, not because this class prevents them.
        - Does NOT handle timezone conversions (cron is evaluated against
          whatever the clock returns).
    """

    def __init__(
        self,
        driver: BillingRunDriver,
        clock: Clock | None = None,
        cron_expression: str = DEFAULT_SCHEDULE,
        tick_interval_seconds: float = 60,
        run_on_start: bool = False,
    ):
        parse_cron(cron_expression)  # fail fast on a bad expression
        self._driver = driver
        self._clock = clock or SystemClock()
        self._schedule = TriggerSchedule(cron_expression=cron_expression)
        self._tick_interval = tick_interval_seconds
        self._run_on_start = run_on_start
        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._last_summary: RunSummary | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> RunSummary | None:
        """Evaluate the schedule and fire if due (public for testing).

        The first tick only arms the schedule.  Returns the run summary when
        a run fired, else None.  A StorageError aborts that run; the slot is
        still consumed and the next slot retries.
        """
        with self._tick_lock:
            now = self._clock.now()

            if self._schedule.next_run_at is None:
                self._schedule = arm(self._schedule, now)
                logger.info(
                    "billing_schedule_armed",
                    extra={"next_run_at": self._schedule.next_run_at.isoformat()},
                )
                return None

            if not should_fire(self._schedule, now):
                return None

            try:
                summary = self._driver.run_once(
                    now,
                    trigger=RunTrigger.SCHEDULED,
                    cancel_event=self._stop_event,
                )
            except StorageError:
                logger.exception(
                    "scheduled_run_failed",
                    extra={"slot": self._schedule.next_run_at.isoformat()},
                )
                summary = None
            finally:
                self._schedule = record_fire(self._schedule, now)

            self._last_summary = summary or self._last_summary
            logger.info(
                "billing_schedule_fired",
                extra={
                    "run_id": str(summary.run_id) if summary else None,
                    "next_run_at": self._schedule.next_run_at.isoformat(),
                },
            )
            return summary

    def run_once(self, now: date | datetime | None = None) -> RunSummary:
        """Run the billing engine now, outside the schedule (backfill).

        Raises:
            StorageError: If the store is unreachable.
        """
        summary = self._driver.run_once(now, trigger=RunTrigger.MANUAL)
        self._last_summary = summary
        return summary

    def start(self) -> None:
        """Start the trigger loop in a background thread (RB-10)."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        if self._run_on_start:
            now = self._clock.now()
            self._schedule = TriggerSchedule(
                cron_expression=self._schedule.cron_expression,
                next_run_at=now,
                last_run_at=self._schedule.last_run_at,
                is_active=self._schedule.is_active,
            )
        self._thread = threading.Thread(
            target=self._run_loop,
            name="rent-billing-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "billing_service_started",
            extra={
                "cron_expression": self._schedule.cron_expression,
                "tick_interval": self._tick_interval,
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the loop to finish (RB-10).

        An in-flight run stops between tenants; unreached tenants are
        reported as deferred.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("billing_service_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def schedule(self) -> TriggerSchedule:
        return self._schedule

    @property
    def last_summary(self) -> RunSummary | None:
        return self._last_summary

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop. Exits when stop_event is set (RB-10)."""
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("billing_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)
