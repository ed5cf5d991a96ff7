"""Pre-migration bootstrap of service-owned schemas."""

from __future__ import annotations

from sqlalchemy import Engine, text

from resources.substrates.postgres.schema_session import validate_schema_name


def ensure_schema(engine: Engine, schema: str) -> None:
    """Create ``schema`` when it does not exist yet."""
    validate_schema_name(schema)
    with engine.begin() as connection:
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema}"))
