"""
rent_billing.services -- Snapshot, creation, run driver, trigger service.
"""

from rent_billing.services.driver import BillingRunDriver
from rent_billing.services.emitters import (
    AuditEmitter,
    AuditEntry,
    LoggingNotificationEmitter,
    NotificationEmitter,
    NotificationMessage,
    SqlAuditEmitter,
    SqlNotificationEmitter,
)
from rent_billing.services.invoice_creator import IdempotentInvoiceCreator
from rent_billing.services.lease_snapshot import (
    LeaseSnapshotProvider,
    SqlLeaseSnapshotProvider,
    StaticLeaseSnapshotProvider,
)
from rent_billing.services.record_service import BillingRecordService
from rent_billing.services.service import RentBillingService

__all__ = [
    "AuditEmitter",
    "AuditEntry",
    "BillingRecordService",
    "BillingRunDriver",
    "IdempotentInvoiceCreator",
    "LeaseSnapshotProvider",
    "LoggingNotificationEmitter",
    "NotificationEmitter",
    "NotificationMessage",
    "RentBillingService",
    "SqlAuditEmitter",
    "SqlLeaseSnapshotProvider",
    "SqlNotificationEmitter",
    "StaticLeaseSnapshotProvider",
]
