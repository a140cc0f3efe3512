"""
ORM model for the lease registry rows the billing engine reads.

Contract:
    LeaseModel is owned by the administrative flows of the wider system.
    The billing engine only reads it, through the SQL snapshot provider,
    and converts each row to a frozen ``Lease`` via ``to_dto()``.

Architecture: rent_billing/models.  Imports from rent_kernel.db.base only.

Note:
    ``due_day_of_month`` and ``rent_amount`` are nullable on purpose: the
    registry can hold incomplete rows, and the driver must report them as
    failed tenants rather than crash or default them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rent_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from rent_billing.domain.types import Lease


class LeaseModel(TrackedBase):
    """Lease registry row (read-only to the billing engine)."""

    __tablename__ = "leases"

    __table_args__ = (
        Index("ix_leases_active", "is_active", "is_deleted"),
        Index("ix_leases_tenant_type", "tenant_type"),
    )

    tenant_id: Mapped[UUID] = mapped_column(
        UUIDString(), nullable=False, unique=True,
    )
    tenant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    tenant_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="rent",
    )
    unit_ref: Mapped[str | None] = mapped_column(String(200), nullable=True)
    property_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    due_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rent_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def to_dto(self) -> Lease:
        from rent_billing.domain.types import Lease, TenantType

        return Lease(
            tenant_id=self.tenant_id,
            due_day_of_month=self.due_day_of_month,
            rent_amount=self.rent_amount,
            unit_ref=self.unit_ref,
            tenant_name=self.tenant_name,
            property_name=self.property_name,
            active=self.is_active,
            tenant_type=TenantType(self.tenant_type),
        )
