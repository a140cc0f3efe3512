"""
Module: rent_kernel.db.errors
Responsibility: Translate connectivity failures into the kernel's typed
    StorageError at service boundaries.

Failure modes:
    - OperationalError, InterfaceError and pool TimeoutError mean the store
      is unreachable or lost the connection.  They become StorageError,
      which aborts a billing run.
    - Row-level errors (IntegrityError, DataError, ProgrammingError and
      other DBAPIError subclasses) pass through untouched so the driver
      can fail the one tenant and carry on.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from rent_kernel.exceptions import StorageError
from rent_kernel.logging_config import get_logger

logger = get_logger("db.errors")

CONNECTIVITY_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def storage_errors(operation: str) -> Generator[None, None, None]:
    """Re-raise connectivity failures inside the block as StorageError.

    Usage:
        with storage_errors("fetch_active_leases"):
            rows = session.execute(stmt).scalars().all()
    """
    try:
        yield
    except CONNECTIVITY_ERRORS as exc:
        detail = str(getattr(exc, "orig", None) or exc)
        logger.error(
            "storage_operation_failed",
            extra={"operation": operation, "detail": detail},
        )
        raise StorageError(operation, detail) from exc
