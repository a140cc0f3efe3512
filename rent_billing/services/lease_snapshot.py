"""
Lease snapshot providers.

Contract:
    ``fetch_active_leases()`` returns an immutable tuple of ``Lease`` values
    for leases that are active, not soft-deleted, and billed monthly
    (tenant type ``rent``).  The driver calls it once per run and treats the
    result as frozen for the run's duration.

Architecture: rent_billing/services.  Reads rent_billing.models; never writes.

Failure modes:
    - StorageError if the registry cannot be read (aborts the run).
    - Incomplete rows are returned as-is; validation is the driver's job so
      that each bad lease is reported individually.
"""

from __future__ import annotations

from typing import Callable, Iterable, Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session

from rent_kernel.db.errors import storage_errors
from rent_kernel.logging_config import get_logger

from rent_billing.domain.types import Lease, TenantType
from rent_billing.models.lease import LeaseModel

logger = get_logger("billing.snapshot")


@runtime_checkable
class LeaseSnapshotProvider(Protocol):
    """Read-only source of active leases."""

    def fetch_active_leases(self) -> tuple[Lease, ...]: ...


class SqlLeaseSnapshotProvider:
    """Reads the ``leases`` table through a fresh session per snapshot."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        tenant_types: Iterable[TenantType | str] = (TenantType.RENT,),
    ):
        self._session_factory = session_factory
        self._tenant_types = tuple(TenantType(t).value for t in tenant_types)

    def fetch_active_leases(self) -> tuple[Lease, ...]:
        with storage_errors("fetch_active_leases"):
            with self._session_factory() as session:
                rows = session.execute(
                    select(LeaseModel)
                    .where(
                        LeaseModel.is_active == True,  # noqa: E712
                        LeaseModel.is_deleted == False,  # noqa: E712
                        LeaseModel.tenant_type.in_(self._tenant_types),
                    )
                    .order_by(LeaseModel.created_at, LeaseModel.tenant_id)
                ).scalars().all()
                leases = tuple(row.to_dto() for row in rows)

        logger.debug(
            "lease_snapshot_fetched",
            extra={"lease_count": len(leases), "tenant_types": self._tenant_types},
        )
        return leases


class StaticLeaseSnapshotProvider:
    """Serves a fixed set of leases held in memory.

    Applies the same active / tenant-type filter as the SQL provider so the
    two are interchangeable.
    """

    def __init__(
        self,
        leases: Iterable[Lease],
        tenant_types: Iterable[TenantType | str] = (TenantType.RENT,),
    ):
        self._leases = tuple(leases)
        self._tenant_types = frozenset(TenantType(t) for t in tenant_types)

    def fetch_active_leases(self) -> tuple[Lease, ...]:
        return tuple(
            lease for lease in self._leases
            if lease.active and lease.tenant_type in self._tenant_types
        )
