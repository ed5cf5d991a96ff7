"""Live managed-account reads backed by the ledger RPC adapter."""

from __future__ import annotations

from resources.adapters.ledger_rpc import LedgerRpcAdapter, LedgerRpcDependencyError
from services.state.account_indexer.codec import decode_managed_account
from services.state.account_indexer.config import AccountIndexerSettings
from services.state.account_indexer.domain import AccountSnapshot


class LedgerUnavailableError(RuntimeError):
    """Raised when the ledger could not be asked about an account."""


class LedgerAccountReader:
    """Fetch and decode managed accounts owned by the configured program."""

    def __init__(self, *, adapter: LedgerRpcAdapter, settings: AccountIndexerSettings) -> None:
        self._adapter = adapter
        self._settings = settings

    def fetch_managed_account(self, address: str) -> AccountSnapshot | None:
        """Return the decoded account at ``address``, or ``None`` if it is not one.

        Transport failures raise ``LedgerUnavailableError`` so callers can tell
        them apart from a definitive "not a managed account" answer.
        """
        try:
            info = self._adapter.get_account_info(address=address)
        except LedgerRpcDependencyError as exc:
            raise LedgerUnavailableError(f"ledger read failed for {address}") from exc
        if info is None:
            return None
        return decode_managed_account(
            address,
            info,
            program_id=self._settings.program_id,
            account_type_name=self._settings.account_type_name,
        )
