"""SQLAlchemy helpers for ULID-backed primary keys."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, LargeBinary

ULID_BYTES_LENGTH = 16


def ulid_primary_key_column(
    name: str = "id",
    *,
    table_name: str,
) -> Column[bytes]:
    """Return a 16-byte binary primary-key column with a length check.

    ``LargeBinary`` renders as ``BYTEA`` on PostgreSQL and ``BLOB`` elsewhere;
    ``length()`` counts bytes for binary values on both.
    """
    constraint = CheckConstraint(
        f"length({name}) = {ULID_BYTES_LENGTH}",
        name=f"ck_{table_name}_{name}_ulid_16",
    )
    return Column(name, LargeBinary(ULID_BYTES_LENGTH), constraint, primary_key=True, nullable=False)
