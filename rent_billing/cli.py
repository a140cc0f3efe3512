"""
rent-billing command line.

Usage:
    rent-billing [--config PATH] init-db
    rent-billing [--config PATH] run [--as-of YYYY-MM-DD] [--workers N]
    rent-billing [--config PATH] serve

``run`` prints the run summary as JSON on stdout.  Exit codes: 0 success,
1 one or more tenants failed, 2 the store was unreachable.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
import threading
from datetime import date

from rent_config import get_active_config
from rent_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from rent_kernel.exceptions import StorageError
from rent_kernel.logging_config import LogContext, configure_logging, get_logger

from rent_billing.orchestrator import BillingOrchestrator

logger = get_logger("billing.cli")

EXIT_OK = 0
EXIT_TENANT_FAILURES = 1
EXIT_STORAGE_FAILURE = 2


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a YYYY-MM-DD date: {value!r}") from exc


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rent-billing",
        description="Recurring rent billing record generation.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML file overriding the packaged defaults",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the billing tables")

    run = sub.add_parser("run", help="Run one billing pass now and print the summary")
    run.add_argument(
        "--as-of",
        type=_parse_date,
        default=None,
        help="Run date (YYYY-MM-DD); defaults to today",
    )
    run.add_argument(
        "--workers",
        type=_positive_int,
        default=None,
        help="Override billing.max_workers for this run",
    )

    sub.add_parser("serve", help="Run the daily trigger until SIGINT/SIGTERM")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = get_active_config(args.config)
    configure_logging(level=config.logging.level)

    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )
    try:
        if args.command == "init-db":
            create_tables(engine)
            return EXIT_OK

        orchestrator = BillingOrchestrator.from_config(config, get_session_factory())
        with LogContext.bind(actor_id=str(orchestrator.actor_id)):
            if args.command == "run":
                return _run(orchestrator, args)
            return _serve(orchestrator)
    finally:
        reset_engine()


def _run(orchestrator: BillingOrchestrator, args: argparse.Namespace) -> int:
    try:
        summary = orchestrator.create_driver(args.workers).run_once(args.as_of)
    except StorageError as exc:
        print(json.dumps({"error": exc.code, "detail": str(exc)}), file=sys.stderr)
        return EXIT_STORAGE_FAILURE

    print(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False))
    return EXIT_TENANT_FAILURES if summary.failed else EXIT_OK


def _serve(orchestrator: BillingOrchestrator) -> int:
    service = orchestrator.create_service()
    stop_requested = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("shutdown_signal_received", extra={"signal": signum})
        stop_requested.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    service.start()
    try:
        while not stop_requested.wait(timeout=1.0):
            pass
    finally:
        service.stop()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
