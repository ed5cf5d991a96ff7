"""Account Indexer owned Postgres runtime wiring."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from packages.mirror_shared.config import MirrorSettings
from resources.substrates.postgres import (
    ServiceSchemaSessionProvider,
    create_postgres_engine,
    create_session_factory,
    ping,
    resolve_postgres_settings,
    run_service_migrations,
)
from services.state.account_indexer.component import account_indexer_schema

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "migrations" / "alembic.ini"


@dataclass(frozen=True)
class AccountIndexerPostgresRuntime:
    """Concrete service-owned handle for schema-scoped Postgres access."""

    engine: Engine
    session_factory: sessionmaker[Session]
    schema_sessions: ServiceSchemaSessionProvider
    health_timeout_seconds: float

    @classmethod
    def from_settings(cls, settings: MirrorSettings) -> "AccountIndexerPostgresRuntime":
        """Build the service DB runtime from typed application settings."""
        postgres_config = resolve_postgres_settings(settings)
        engine = create_postgres_engine(postgres_config)
        session_factory = create_session_factory(engine)
        return cls(
            engine=engine,
            session_factory=session_factory,
            schema_sessions=ServiceSchemaSessionProvider(
                session_factory=session_factory,
                schema=account_indexer_schema(),
            ),
            health_timeout_seconds=postgres_config.health_timeout_seconds,
        )

    def is_healthy(self) -> bool:
        """Return ``True`` when the backing Postgres connection is reachable."""
        return ping(self.engine, timeout_seconds=self.health_timeout_seconds)


def run_migrations(settings: MirrorSettings) -> None:
    """Create the service schema and upgrade it to the latest revision."""
    run_service_migrations(
        settings=resolve_postgres_settings(settings),
        schema=account_indexer_schema(),
        alembic_ini=ALEMBIC_INI,
    )
