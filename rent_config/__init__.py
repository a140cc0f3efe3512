"""
rent_config -- single public entrypoint for rent billing configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``rent_kernel`` and below the
    ``rent_billing`` services and CLI.  The kernel never imports from
    ``rent_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - The packaged ``sets/default.yaml`` is always the base; a caller's file
      only overrides the keys it names.
    - Deterministic identity: the same effective mapping always produces the
      same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ValueError`` -- unknown keys or out-of-range values.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``billing_config_loaded`` log entry with the config id, version,
    checksum, and source path, tying each run's log to the configuration
    that governed it.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from rent_config.loader import load_yaml_file, merge, parse_config
from rent_config.schema import (
    BillingConfig,
    DatabaseConfig,
    LoggingConfig,
    RentBillingConfig,
    SchedulerConfig,
)

_logger = logging.getLogger("rent_kernel.config")

_DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

CONFIG_PATH_ENV = "RENT_BILLING_CONFIG"
DATABASE_URL_ENV = "RENT_BILLING_DATABASE_URL"


def get_active_config(config_path: str | Path | None = None) -> RentBillingConfig:
    """The ONLY public configuration entrypoint.

    Resolution order (later wins):
        1. ``rent_config/sets/default.yaml``.
        2. ``config_path``, or the file named by ``RENT_BILLING_CONFIG``.
        3. ``RENT_BILLING_DATABASE_URL`` for ``database.url``.

    Args:
        config_path: Optional YAML file overriding the defaults.

    Returns:
        A frozen, validated ``RentBillingConfig``.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If validation fails.
    """
    data = load_yaml_file(_DEFAULT_CONFIG_FILE)
    source = str(_DEFAULT_CONFIG_FILE)

    override_path = config_path or os.environ.get(CONFIG_PATH_ENV)
    if override_path:
        path = Path(override_path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        data = merge(data, load_yaml_file(path))
        source = str(path)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = merge(data, {"database": {"url": database_url}})

    config = parse_config(data, source_path=source)

    _logger.info(
        "billing_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source_path": source,
            "max_workers": config.billing.max_workers,
            "cron_expression": config.scheduler.cron_expression,
            "timezone": config.scheduler.timezone,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "RentBillingConfig",
    "SchedulerConfig",
    "get_active_config",
]
