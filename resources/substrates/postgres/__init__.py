"""Shared Postgres substrate primitives for ledger mirror services."""

from resources.substrates.postgres.bootstrap import ensure_schema
from resources.substrates.postgres.config import (
    RESOURCE_COMPONENT_ID,
    PostgresSettings,
    resolve_postgres_settings,
)
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import is_database_error, normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.migrations import run_service_migrations
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)

__all__ = [
    "RESOURCE_COMPONENT_ID",
    "PostgresSettings",
    "ServiceSchemaSessionProvider",
    "create_postgres_engine",
    "create_session_factory",
    "ensure_schema",
    "is_database_error",
    "normalize_postgres_error",
    "ping",
    "resolve_postgres_settings",
    "run_service_migrations",
    "transactional_session",
]
