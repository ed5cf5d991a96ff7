"""Data-layer exports for Account Indexer Service."""

from services.state.account_indexer.data.repository import (
    PostgresAccountRepository,
    SqlMirrorSession,
)
from services.state.account_indexer.data.runtime import (
    AccountIndexerPostgresRuntime,
    run_migrations,
)
from services.state.account_indexer.data.unit_of_work import AccountMirrorUnitOfWork

__all__ = [
    "AccountIndexerPostgresRuntime",
    "AccountMirrorUnitOfWork",
    "PostgresAccountRepository",
    "SqlMirrorSession",
    "run_migrations",
]
