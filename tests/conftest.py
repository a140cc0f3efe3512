"""
Pytest fixtures for the rent billing test suite.

Provides:
- Structured log capture
- In-memory SQLite engine with all billing tables
- Deterministic clock (naive datetimes; SQLite strips tzinfo)
- Lease seeding helpers and recording / failing emitters
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import rent_billing.models  # noqa: F401  (registers tables on Base.metadata)
from rent_kernel.db.base import Base
from rent_kernel.domain.clock import DeterministicClock
from rent_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

from rent_billing.domain.types import Lease, TenantType
from rent_billing.models.lease import LeaseModel
from rent_billing.services.emitters import AuditEntry, NotificationMessage

# Test actor ID for all test operations
TEST_ACTOR_ID = UUID("11111111-1111-1111-1111-111111111111")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture rent_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, driver):
            driver.run_once(date(2025, 11, 25))
            logs = captured_logs()
            assert any(r["message"] == "billing_run_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rent_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    # Use naive datetimes for SQLite compatibility (SQLite strips tzinfo)
    return DeterministicClock(
        fixed_time=datetime(2025, 11, 25, 0, 0, 0),
    )


# =============================================================================
# Leases
# =============================================================================


def make_lease(
    due_day_of_month: int | None = 30,
    rent_amount: Decimal | None = Decimal("15000"),
    unit_ref: str | None = "A-101",
    tenant_id: UUID | None = None,
    tenant_name: str | None = "Asha Rao",
    property_name: str | None = "Lakeview",
    active: bool = True,
    tenant_type: TenantType = TenantType.RENT,
) -> Lease:
    """Build a Lease value with a fresh tenant id unless one is given."""
    return Lease(
        tenant_id=tenant_id or uuid4(),
        due_day_of_month=due_day_of_month,
        rent_amount=rent_amount,
        unit_ref=unit_ref,
        tenant_name=tenant_name,
        property_name=property_name,
        active=active,
        tenant_type=tenant_type,
    )


def add_lease_row(
    session,
    due_day_of_month: int | None = 30,
    rent_amount: Decimal | None = Decimal("15000"),
    unit_ref: str | None = "A-101",
    tenant_name: str | None = "Asha Rao",
    tenant_type: str = "rent",
    is_active: bool = True,
    is_deleted: bool = False,
    created_at: datetime | None = None,
) -> LeaseModel:
    """Insert and commit one row into ``leases``."""
    model = LeaseModel(
        id=uuid4(),
        tenant_id=uuid4(),
        tenant_name=tenant_name,
        tenant_type=tenant_type,
        unit_ref=unit_ref,
        property_name="Lakeview",
        due_day_of_month=due_day_of_month,
        rent_amount=rent_amount,
        is_active=is_active,
        is_deleted=is_deleted,
        created_at=created_at or datetime(2025, 1, 1, 9, 0, 0),
        updated_at=created_at or datetime(2025, 1, 1, 9, 0, 0),
        created_by_id=TEST_ACTOR_ID,
    )
    session.add(model)
    session.commit()
    return model


@pytest.fixture
def add_lease(db_session):
    def _add(**kwargs) -> LeaseModel:
        return add_lease_row(db_session, **kwargs)

    return _add


# =============================================================================
# Emitters
# =============================================================================


class RecordingNotifier:
    def __init__(self):
        self.messages: list[NotificationMessage] = []

    def notify(self, message: NotificationMessage) -> None:
        self.messages.append(message)


class RecordingAuditor:
    def __init__(self):
        self.entries: list[AuditEntry] = []

    def record(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


class FailingNotifier:
    def notify(self, message: NotificationMessage) -> None:
        raise ConnectionError("notification service unreachable")


class FailingAuditor:
    def record(self, entry: AuditEntry) -> None:
        raise ConnectionError("audit log unreachable")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def auditor():
    return RecordingAuditor()
