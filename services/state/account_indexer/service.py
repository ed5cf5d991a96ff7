"""Authoritative in-process Python API for Account Indexer Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from packages.mirror_shared.config import MirrorSettings
from packages.mirror_shared.envelope import Envelope, EnvelopeMeta
from services.state.account_indexer.domain import (
    AccountRecord,
    EventKind,
    EventRecord,
    HealthStatus,
    ReconcileOutcome,
    TransactionRecord,
)


class AccountIndexerService(ABC):
    """Public API for mirrored managed-account state and history."""

    @abstractmethod
    def reconcile_transaction(
        self,
        *,
        meta: EnvelopeMeta,
        transaction_id: str,
        transaction: TransactionRecord,
    ) -> Envelope[ReconcileOutcome]:
        """Apply one finalized transaction to the mirror."""

    @abstractmethod
    def get_account(self, *, meta: EnvelopeMeta, address: str) -> Envelope[AccountRecord]:
        """Read one mirrored account with its operators."""

    @abstractmethod
    def list_accounts_by_owner(
        self, *, meta: EnvelopeMeta, owner: str
    ) -> Envelope[list[AccountRecord]]:
        """List mirrored accounts owned by one address."""

    @abstractmethod
    def list_accounts_by_operator(
        self, *, meta: EnvelopeMeta, operator: str
    ) -> Envelope[list[AccountRecord]]:
        """List mirrored accounts that delegate to one operator."""

    @abstractmethod
    def list_account_events(
        self,
        *,
        meta: EnvelopeMeta,
        address: str,
        event_kind: EventKind | None = None,
        limit: int | None = None,
    ) -> Envelope[list[EventRecord]]:
        """List one account's audit events, newest first."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[HealthStatus]:
        """Return service and owned dependency readiness status."""


def build_account_indexer_service(*, settings: MirrorSettings) -> AccountIndexerService:
    """Build the default Account Indexer implementation from typed settings."""
    from services.state.account_indexer.implementation import (
        DefaultAccountIndexerService,
    )

    return DefaultAccountIndexerService.from_settings(settings)
