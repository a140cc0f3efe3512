"""
rent_billing.models -- ORM models for lease snapshots, billing records, and
side-effect sinks.

Architecture: rent_billing/models. Imports from rent_kernel.db.base only.
"""

from rent_billing.models.billing import (
    BILLING_RECORD_UNIQUE,
    ActivityLogModel,
    BillingRecordModel,
    NotificationModel,
)
from rent_billing.models.lease import LeaseModel

__all__ = [
    "BILLING_RECORD_UNIQUE",
    "ActivityLogModel",
    "BillingRecordModel",
    "LeaseModel",
    "NotificationModel",
]
