"""Atomic write scope for Account Indexer Service mirror mutations."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.state.account_indexer.interfaces import MirrorSession, MirrorUnitOfWork

from .repository import SqlMirrorSession

T = TypeVar("T")


class AccountMirrorUnitOfWork(MirrorUnitOfWork):
    """Run one callback inside one schema-scoped database transaction."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def run(self, fn: Callable[[MirrorSession], T]) -> T:
        """Call ``fn`` with a mirror session; commit on return, roll back on raise."""
        with self._sessions.session() as session:
            return fn(SqlMirrorSession(session))
