"""Transport-neutral protocol interfaces used by Account Indexer Service."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, TypeVar

from services.state.account_indexer.domain import (
    AccountRecord,
    AccountSnapshot,
    AccountStatus,
    EventKind,
    EventRecord,
)

T = TypeVar("T")


class ManagedAccountReader(Protocol):
    """Protocol for live on-chain managed-account reads."""

    def fetch_managed_account(self, address: str) -> AccountSnapshot | None:
        """Return decoded account state, or ``None`` when ``address`` is not one."""


class MirrorSession(Protocol):
    """Write operations available inside one mirror transaction."""

    def get_account_for_update(self, *, address: str) -> AccountRecord | None:
        """Read and row-lock one mirrored account, without operators."""

    def insert_account(self, *, snapshot: AccountSnapshot) -> AccountRecord:
        """Insert one ACTIVE account row from on-chain state and row-lock it.

        Returns the existing row when another writer inserted the address first.
        """

    def set_account_status(self, *, account_id: str, status: AccountStatus) -> None:
        """Update one account's lifecycle status."""

    def list_operators(self, *, account_id: str) -> dict[str, str]:
        """Return mirrored operator address to per-transaction limit."""

    def insert_operator(self, *, account_id: str, address: str, per_tx_limit: int) -> None:
        """Insert one operator row."""

    def delete_operator(self, *, account_id: str, address: str) -> bool:
        """Delete one operator row and return whether it existed."""

    def delete_operators(self, *, account_id: str) -> int:
        """Delete every operator row of one account and return the count."""

    def has_events(self, *, account_id: str, transaction_id: str) -> bool:
        """Return whether events from ``transaction_id`` are already recorded."""

    def append_event(
        self,
        *,
        account_id: str,
        kind: EventKind,
        transaction_id: str,
        instruction_index: int,
        actor: str,
        payload: dict[str, str] | None,
    ) -> None:
        """Append one immutable audit event."""


class MirrorUnitOfWork(Protocol):
    """Run mirror writes in one atomic transaction."""

    def run(self, fn: Callable[[MirrorSession], T]) -> T:
        """Call ``fn`` with a session; commit on return, roll back on raise."""


class AccountRepository(Protocol):
    """Protocol for mirrored account and event queries."""

    def account_exists(self, *, address: str) -> bool:
        """Return whether ``address`` is a mirrored account."""

    def get_account(self, *, address: str) -> AccountRecord | None:
        """Read one account with its operators."""

    def list_accounts_by_owner(self, *, owner: str) -> list[AccountRecord]:
        """List accounts owned by ``owner`` with their operators."""

    def list_accounts_by_operator(self, *, operator: str) -> list[AccountRecord]:
        """List accounts delegating to ``operator`` with their operators."""

    def list_events(
        self,
        *,
        address: str,
        kind: EventKind | None,
        limit: int,
    ) -> list[EventRecord]:
        """List events of one account, newest first."""
