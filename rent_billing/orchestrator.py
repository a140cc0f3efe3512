"""
BillingOrchestrator -- DI container for the rent billing engine.

Contract:
    Wires the lease snapshot provider, emitters, invoice creator, run
    driver, trigger service, and record service.  Single place where all
    billing dependencies are composed.

Architecture: rent_billing (top-level).  The canonical entry point for
    configuring and running billing, used by the CLI.

Invariants enforced:
    RB-7 -- Clock injection (all services receive the same Clock).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from rent_kernel.domain.clock import Clock, SystemClock
from rent_kernel.logging_config import get_logger

from rent_billing.services.driver import BillingRunDriver
from rent_billing.services.emitters import (
    AuditEmitter,
    LoggingNotificationEmitter,
    NotificationEmitter,
    SqlAuditEmitter,
    SqlNotificationEmitter,
)
from rent_billing.services.invoice_creator import IdempotentInvoiceCreator
from rent_billing.services.lease_snapshot import (
    LeaseSnapshotProvider,
    SqlLeaseSnapshotProvider,
)
from rent_billing.services.record_service import BillingRecordService
from rent_billing.services.service import RentBillingService

if TYPE_CHECKING:
    from rent_config.schema import RentBillingConfig

logger = get_logger("billing.orchestrator")

# Recorded as created_by on engine-written rows when no actor is configured.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


class BillingOrchestrator:
    """DI container for the billing engine.

    Contract:
        - ``from_config()`` factory creates a fully wired orchestrator.
        - ``create_driver()`` returns a BillingRunDriver for ad-hoc runs.
        - ``create_service()`` returns a RentBillingService for background use.
        - ``create_record_service()`` returns a BillingRecordService.

    Non-goals:
        - Does NOT start the service automatically -- caller decides.
        - Does NOT own the engine -- caller initializes and disposes it.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        actor_id: UUID | None = None,
        snapshot_provider: LeaseSnapshotProvider | None = None,
        notification_emitter: NotificationEmitter | None = None,
        audit_emitter: AuditEmitter | None = None,
        max_workers: int = 1,
        run_timeout_seconds: float | None = None,
        currency_symbol: str = "₹",
        cron_expression: str = "0 0 * * *",
        tick_interval_seconds: float = 60,
        run_on_start: bool = False,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._actor_id = actor_id or SYSTEM_ACTOR_ID
        self._snapshot_provider = snapshot_provider or SqlLeaseSnapshotProvider(
            session_factory,
        )
        self._notifier = notification_emitter
        self._auditor = audit_emitter
        self._max_workers = max_workers
        self._run_timeout = run_timeout_seconds
        self._currency_symbol = currency_symbol
        self._cron_expression = cron_expression
        self._tick_interval = tick_interval_seconds
        self._run_on_start = run_on_start

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: RentBillingConfig,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ) -> BillingOrchestrator:
        """Create a fully wired BillingOrchestrator from configuration.

        Args:
            config: Result of ``rent_config.get_active_config()``.
            session_factory: Callable returning new sessions.
            clock: Optional clock for deterministic testing (RB-7).  When
                omitted, a SystemClock in ``scheduler.timezone``.
        """
        effective_clock = clock or SystemClock(ZoneInfo(config.scheduler.timezone))
        billing = config.billing
        actor_id = billing.actor_id or SYSTEM_ACTOR_ID

        notifier: NotificationEmitter | None
        if billing.notification_sink == "sql":
            notifier = SqlNotificationEmitter(session_factory, actor_id, effective_clock)
        elif billing.notification_sink == "log":
            notifier = LoggingNotificationEmitter()
        else:
            notifier = None

        auditor: AuditEmitter | None = (
            SqlAuditEmitter(session_factory, actor_id, effective_clock)
            if billing.audit_sink == "sql"
            else None
        )

        logger.debug(
            "billing_orchestrator_configured",
            extra={
                "config_id": config.config_id,
                "notification_sink": billing.notification_sink,
                "audit_sink": billing.audit_sink,
                "max_workers": billing.max_workers,
                "timezone": config.scheduler.timezone,
            },
        )

        return cls(
            session_factory=session_factory,
            clock=effective_clock,
            actor_id=actor_id,
            snapshot_provider=SqlLeaseSnapshotProvider(
                session_factory, tenant_types=billing.tenant_types,
            ),
            notification_emitter=notifier,
            audit_emitter=auditor,
            max_workers=billing.max_workers,
            run_timeout_seconds=billing.run_timeout_seconds,
            currency_symbol=billing.currency_symbol,
            cron_expression=config.scheduler.cron_expression,
            tick_interval_seconds=config.scheduler.tick_interval_seconds,
            run_on_start=config.scheduler.run_on_start,
        )

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    def create_creator(self) -> IdempotentInvoiceCreator:
        return IdempotentInvoiceCreator(
            session_factory=self._session_factory,
            actor_id=self._actor_id,
            clock=self._clock,
            notification_emitter=self._notifier,
            audit_emitter=self._auditor,
            currency_symbol=self._currency_symbol,
        )

    def create_driver(self, max_workers: int | None = None) -> BillingRunDriver:
        """Create a run driver.  ``max_workers`` overrides the configured value."""
        return BillingRunDriver(
            snapshot_provider=self._snapshot_provider,
            creator=self.create_creator(),
            clock=self._clock,
            max_workers=max_workers or self._max_workers,
            run_timeout_seconds=self._run_timeout,
        )

    def create_service(self) -> RentBillingService:
        """Create the trigger service around a fresh driver."""
        return RentBillingService(
            driver=self.create_driver(),
            clock=self._clock,
            cron_expression=self._cron_expression,
            tick_interval_seconds=self._tick_interval,
            run_on_start=self._run_on_start,
        )

    def create_record_service(self) -> BillingRecordService:
        return BillingRecordService(
            session_factory=self._session_factory,
            clock=self._clock,
            audit_emitter=self._auditor,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def actor_id(self) -> UUID:
        return self._actor_id
