"""Postgres/SQLAlchemy exception normalization."""

from __future__ import annotations

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)

from packages.mirror_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
)


def is_database_error(exc: Exception) -> bool:
    """Return whether ``exc`` originates from the SQLAlchemy/psycopg stack."""
    if isinstance(exc, SQLAlchemyError):
        return True
    return type(exc).__module__.startswith("psycopg")


def normalize_postgres_error(exc: Exception) -> ErrorDetail:
    """Map low-level database exceptions onto shared error semantics."""
    metadata = {"exception_type": type(exc).__name__}

    if isinstance(exc, IntegrityError) or "UniqueViolation" in metadata["exception_type"]:
        return conflict_error(
            "resource already exists",
            code=codes.ALREADY_EXISTS,
            metadata=metadata,
        )

    if isinstance(exc, OperationalError) or "timeout" in str(exc).lower():
        return dependency_error(
            "postgres unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )

    if isinstance(exc, (InterfaceError, ProgrammingError)):
        return dependency_error(
            "postgres request failed",
            retryable=False,
            metadata=metadata,
        )

    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return dependency_error(
            "postgres connection lost",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )

    return internal_error(
        "unexpected postgres failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
