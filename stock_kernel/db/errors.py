"""
Module: stock_kernel.db.errors
Responsibility: Translate SQLAlchemy / DBAPI failures into StoreFailureError
    with a machine-readable kind.
Architecture position: Kernel > DB.  Used by the operations layer around
    each transactional scope.

Failure modes:
    - Every SQLAlchemyError escaping the wrapped block becomes a
      StoreFailureError (original exception chained as __cause__).
    - StockKernelError subclasses pass through untouched.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
)

from stock_kernel.exceptions import StoreFailureError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.errors")

# Fragments of driver messages for constraint violations.  PostgreSQL reports
# SQLSTATE codes (23505 unique, 23503 foreign key); SQLite only
# reports text.
_UNIQUE_MARKERS = ("23505", "unique constraint", "duplicate key")
_FOREIGN_KEY_MARKERS = ("23503", "foreign key constraint")


def classify_store_error(exc: SQLAlchemyError) -> str:
    """Map a SQLAlchemy exception to a StoreFailureError kind."""
    if isinstance(exc, NoResultFound):
        return StoreFailureError.NOT_FOUND
    if isinstance(exc, IntegrityError):
        text = _driver_text(exc)
        if any(marker in text for marker in _UNIQUE_MARKERS):
            return StoreFailureError.UNIQUE_VIOLATION
        if any(marker in text for marker in _FOREIGN_KEY_MARKERS):
            return StoreFailureError.NOT_FOUND
        # CHECK and NOT NULL violations
        return StoreFailureError.CHECK_VIOLATION
    if isinstance(exc, (OperationalError, InterfaceError)):
        return StoreFailureError.CONNECTION_FAILURE
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreFailureError.CONNECTION_FAILURE
    return StoreFailureError.UNKNOWN


def _driver_text(exc: DBAPIError) -> str:
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None)
    return f"{pgcode or ''} {orig}".lower()


@contextmanager
def store_errors() -> Generator[None, None, None]:
    """
    Re-raise SQLAlchemy failures from the wrapped block as StoreFailureError.

    Usage:
        with store_errors(), session_scope() as session:
            ...
    """
    try:
        yield
    except SQLAlchemyError as exc:
        kind = classify_store_error(exc)
        logger.error(
            "store_failure",
            extra={"kind": kind, "error_type": type(exc).__name__},
        )
        raise StoreFailureError(kind, str(exc).splitlines()[0]) from exc
