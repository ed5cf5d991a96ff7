"""Alembic upgrade orchestration for service-owned schemas."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from alembic import command
from alembic.config import Config

from packages.mirror_shared.logging import get_logger
from resources.substrates.postgres.bootstrap import ensure_schema
from resources.substrates.postgres.config import PostgresSettings
from resources.substrates.postgres.engine import create_postgres_engine

_LOGGER = get_logger(__name__)


class MigrationExecutionError(RuntimeError):
    """Raised when a service migration pass fails."""


def run_service_migrations(
    *,
    settings: PostgresSettings,
    schema: str,
    alembic_ini: Path,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
) -> None:
    """Provision ``schema`` and upgrade its Alembic history to head."""
    engine = create_postgres_engine(settings)
    try:
        ensure_schema(engine, schema)
    finally:
        engine.dispose()

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(alembic_ini.parent))
    config.set_main_option("sqlalchemy.url", settings.url.replace("%", "%%"))
    try:
        upgrade_fn(config, "head")
    except Exception as exc:
        raise MigrationExecutionError(
            f"migration failed for schema '{schema}' using '{alembic_ini}'"
        ) from exc
    _LOGGER.info("Migrations applied: schema=%s", schema)
