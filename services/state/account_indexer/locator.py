"""Resolve which referenced address a transaction acted on."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from packages.mirror_shared.logging import get_logger
from services.state.account_indexer.domain import AccountSnapshot
from services.state.account_indexer.interfaces import ManagedAccountReader
from services.state.account_indexer.reader import LedgerUnavailableError

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class LocatedAccount:
    """Target account of one transaction.

    ``snapshot`` is set when the account was read live from the ledger.
    ``ledger_error`` is set when some ledger reads failed and the account was
    found in the mirror instead, so its post-transaction state is unknown.
    """

    address: str
    snapshot: AccountSnapshot | None = None
    ledger_error: LedgerUnavailableError | None = None


def locate_account(
    addresses: Iterable[str],
    *,
    reader: ManagedAccountReader,
    is_mirrored: Callable[[str], bool],
) -> LocatedAccount | None:
    """Return the first address that is a live managed account, else the first mirrored one.

    Returns ``None`` when no address matches. When nothing matches and some
    ledger read failed, the failure is raised instead, since the missing
    account may simply not have been readable.
    """
    candidates = list(dict.fromkeys(addresses))
    ledger_error: LedgerUnavailableError | None = None

    for address in candidates:
        try:
            snapshot = reader.fetch_managed_account(address)
        except LedgerUnavailableError as exc:
            _LOGGER.warning("Ledger read failed: account_address=%s", address)
            ledger_error = exc
            continue
        if snapshot is not None:
            return LocatedAccount(address=address, snapshot=snapshot)

    for address in candidates:
        if is_mirrored(address):
            return LocatedAccount(address=address, ledger_error=ledger_error)

    if ledger_error is not None:
        raise ledger_error
    return None
