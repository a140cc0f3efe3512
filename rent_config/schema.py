"""
Rent billing configuration schema.

Frozen dataclasses the loader parses YAML into.  Defaults here match
``sets/default.yaml``; a configuration file only needs to name the keys it
changes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BillingConfig:
    """How a billing run processes the lease snapshot."""

    max_workers: int = 4
    run_timeout_seconds: float | None = 3600.0
    tenant_types: tuple[str, ...] = ("rent",)
    currency_symbol: str = "₹"
    actor_id: UUID | None = None
    notification_sink: str = "sql"  # sql | log | none
    audit_sink: str = "sql"  # sql | none


@dataclass(frozen=True)
class SchedulerConfig:
    """Daily trigger."""

    cron_expression: str = "0 0 * * *"
    tick_interval_seconds: float = 60.0
    run_on_start: bool = False
    timezone: str = "UTC"  # IANA name; fixes "today" and the cron wall clock


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///rent_billing.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RentBillingConfig:
    """The complete runtime configuration.

    ``checksum`` is the SHA-256 of the canonical source mapping and
    identifies the exact configuration a process ran with.
    """

    config_id: str = "default"
    version: int = 1
    billing: BillingConfig = field(default_factory=BillingConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source_path: str | None = None
    checksum: str = ""
