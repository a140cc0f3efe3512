"""
Configuration Loader (``rent_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``rent_config.schema`` dataclasses.  Callers go through
``rent_config.get_active_config()``; this module is its internals.

Invariants enforced
-------------------
* Parse and range errors raise ``ValueError`` with descriptive messages
  naming the offending key.
* Unknown keys are rejected so a typo never silently falls back to a
  default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  canonical mapping.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from rent_config.schema import (
    BillingConfig,
    DatabaseConfig,
    LoggingConfig,
    RentBillingConfig,
    SchedulerConfig,
)

_KNOWN_TENANT_TYPES = frozenset({"rent", "lease"})
_NOTIFICATION_SINKS = frozenset({"sql", "log", "none"})
_AUDIT_SINKS = frozenset({"sql", "none"})
_SECTIONS = frozenset({"config_id", "version", "billing", "scheduler", "database", "logging"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge: ``override`` keys replace ``base`` keys."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{name}': {', '.join(sorted(unknown))}")
    return section


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{key} must be an integer >= 1, got {value!r}")
    return value


def _positive_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{key} must be a number > 0, got {value!r}")
    return float(value)


def parse_billing(data: dict[str, Any]) -> BillingConfig:
    defaults = BillingConfig()
    section = _section(
        data,
        "billing",
        {
            "max_workers",
            "run_timeout_seconds",
            "tenant_types",
            "currency_symbol",
            "actor_id",
            "notification_sink",
            "audit_sink",
        },
    )

    timeout = section.get("run_timeout_seconds", defaults.run_timeout_seconds)
    if timeout is not None:
        timeout = _positive_number(timeout, "billing.run_timeout_seconds")

    tenant_types = tuple(section.get("tenant_types", defaults.tenant_types))
    if not tenant_types:
        raise ValueError("billing.tenant_types must not be empty")
    unknown = set(tenant_types) - _KNOWN_TENANT_TYPES
    if unknown:
        raise ValueError(f"billing.tenant_types has unknown type(s): {sorted(unknown)}")

    actor_id = section.get("actor_id")
    if actor_id is not None:
        try:
            actor_id = UUID(str(actor_id))
        except ValueError as exc:
            raise ValueError(f"billing.actor_id is not a UUID: {actor_id!r}") from exc

    notification_sink = section.get("notification_sink", defaults.notification_sink)
    if notification_sink not in _NOTIFICATION_SINKS:
        raise ValueError(
            f"billing.notification_sink must be one of {sorted(_NOTIFICATION_SINKS)}, "
            f"got {notification_sink!r}"
        )
    audit_sink = section.get("audit_sink", defaults.audit_sink)
    if audit_sink not in _AUDIT_SINKS:
        raise ValueError(
            f"billing.audit_sink must be one of {sorted(_AUDIT_SINKS)}, got {audit_sink!r}"
        )

    return BillingConfig(
        max_workers=_positive_int(
            section.get("max_workers", defaults.max_workers), "billing.max_workers",
        ),
        run_timeout_seconds=timeout,
        tenant_types=tenant_types,
        currency_symbol=str(section.get("currency_symbol", defaults.currency_symbol)),
        actor_id=actor_id,
        notification_sink=notification_sink,
        audit_sink=audit_sink,
    )


def parse_scheduler(data: dict[str, Any]) -> SchedulerConfig:
    from rent_billing.domain.schedule import parse_cron

    defaults = SchedulerConfig()
    section = _section(
        data,
        "scheduler",
        {"cron_expression", "tick_interval_seconds", "run_on_start", "timezone"},
    )

    cron_expression = str(section.get("cron_expression", defaults.cron_expression))
    try:
        parse_cron(cron_expression)
    except ValueError as exc:
        raise ValueError(f"scheduler.cron_expression is invalid: {exc}") from exc

    tz_name = str(section.get("timezone", defaults.timezone))
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as exc:
        raise ValueError(f"scheduler.timezone is not a known zone: {tz_name!r}") from exc

    return SchedulerConfig(
        cron_expression=cron_expression,
        tick_interval_seconds=_positive_number(
            section.get("tick_interval_seconds", defaults.tick_interval_seconds),
            "scheduler.tick_interval_seconds",
        ),
        run_on_start=bool(section.get("run_on_start", defaults.run_on_start)),
        timezone=tz_name,
    )


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    defaults = DatabaseConfig()
    section = _section(
        data,
        "database",
        {"url", "echo", "pool_size", "max_overflow", "pool_timeout", "sqlite_busy_timeout"},
    )

    url = section.get("url", defaults.url)
    if not isinstance(url, str) or not url:
        raise ValueError("database.url must be a non-empty string")

    return DatabaseConfig(
        url=url,
        echo=bool(section.get("echo", defaults.echo)),
        pool_size=_positive_int(section.get("pool_size", defaults.pool_size), "database.pool_size"),
        max_overflow=int(section.get("max_overflow", defaults.max_overflow)),
        pool_timeout=_positive_int(
            section.get("pool_timeout", defaults.pool_timeout), "database.pool_timeout",
        ),
        sqlite_busy_timeout=_positive_number(
            section.get("sqlite_busy_timeout", defaults.sqlite_busy_timeout),
            "database.sqlite_busy_timeout",
        ),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", {"level"})
    level = str(section.get("level", LoggingConfig().level)).upper()
    if level not in logging.getLevelNamesMapping():
        raise ValueError(f"logging.level is not a known level: {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any], source_path: str | None = None) -> RentBillingConfig:
    """
    Parse a full configuration mapping.

    Raises:
        ValueError: on unknown sections, unknown keys, or out-of-range values.
    """
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ValueError(f"Unknown configuration section(s): {', '.join(sorted(unknown))}")

    return RentBillingConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        billing=parse_billing(data),
        scheduler=parse_scheduler(data),
        database=parse_database(data),
        logging=parse_logging(data),
        source_path=source_path,
        checksum=compute_checksum(data),
    )
