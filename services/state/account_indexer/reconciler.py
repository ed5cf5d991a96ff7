"""Apply one ledger transaction to the account mirror."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from packages.mirror_shared.locks import KeyedLock
from packages.mirror_shared.logging import fields, get_logger, log_context
from resources.substrates.postgres.errors import is_database_error, normalize_postgres_error
from services.state.account_indexer.balance_delta import extract_balance_delta
from services.state.account_indexer.config import AccountIndexerSettings
from services.state.account_indexer.differ import (
    find_added_operator,
    find_removed_operator,
    stale_operators,
)
from services.state.account_indexer.domain import (
    AccountSnapshot,
    AccountStatus,
    ClassifiedKind,
    EventKind,
    ReconcileOutcome,
    ReconcileStatus,
    TransactionRecord,
)
from services.state.account_indexer.interfaces import (
    AccountRepository,
    ManagedAccountReader,
    MirrorSession,
    MirrorUnitOfWork,
)
from services.state.account_indexer.locator import LocatedAccount, locate_account
from services.state.account_indexer.log_classifier import classify_logs
from services.state.account_indexer.reader import LedgerUnavailableError

_LOGGER = get_logger(__name__)

# Kinds whose transition reads post-transaction account state.
_SNAPSHOT_KINDS = frozenset(
    {
        ClassifiedKind.ACCOUNT_CREATED,
        ClassifiedKind.OPERATOR_ADDED,
        ClassifiedKind.OPERATOR_REMOVED,
        ClassifiedKind.PAUSE_CHANGED,
    }
)

_DIRECT_KINDS = {
    ClassifiedKind.ACCOUNT_CREATED: EventKind.ACCOUNT_CREATED,
    ClassifiedKind.ACCOUNT_CLOSED: EventKind.ACCOUNT_CLOSED,
    ClassifiedKind.DEPOSIT: EventKind.DEPOSIT,
    ClassifiedKind.TRANSFER: EventKind.TRANSFER,
    ClassifiedKind.OPERATOR_ADDED: EventKind.OPERATOR_ADDED,
    ClassifiedKind.OPERATOR_REMOVED: EventKind.OPERATOR_REMOVED,
}


@dataclass
class _Pass:
    """Mutable state of one transaction being applied."""

    transaction_id: str
    transaction: TransactionRecord
    located: LocatedAccount
    account_id: str
    closed: bool
    recorded: list[EventKind] = field(default_factory=list)
    unresolved_removal: bool = False


class Reconciler:
    """Classify, locate, and apply one transaction atomically per account.

    Work for one account address is serialized in-process with a keyed lock
    and across processes by the row lock taken in the unit of work. Ledger
    state is re-read once the row lock is held.
    """

    def __init__(
        self,
        *,
        reader: ManagedAccountReader,
        repository: AccountRepository,
        unit_of_work: MirrorUnitOfWork,
        locks: KeyedLock,
        settings: AccountIndexerSettings,
    ) -> None:
        self._reader = reader
        self._repository = repository
        self._unit_of_work = unit_of_work
        self._locks = locks
        self._settings = settings

    def reconcile(self, transaction_id: str, transaction: TransactionRecord) -> ReconcileOutcome:
        """Mirror the effects of ``transaction``; never raises."""
        with log_context({fields.TRANSACTION_ID: transaction_id}):
            try:
                return self._reconcile(transaction_id, transaction)
            except Exception as exc:  # noqa: BLE001
                retryable = _is_retryable(exc)
                _LOGGER.warning(
                    "Failed to index transaction %s: exception_type=%s retryable=%s",
                    transaction_id,
                    type(exc).__name__,
                    retryable,
                    exc_info=exc,
                )
                return ReconcileOutcome(
                    transaction_id=transaction_id,
                    status=ReconcileStatus.FAILED,
                    retryable=retryable,
                    detail=f"{type(exc).__name__}: {exc}",
                )

    def _reconcile(self, transaction_id: str, transaction: TransactionRecord) -> ReconcileOutcome:
        if not transaction.succeeded:
            return _skipped(transaction_id, ReconcileStatus.SKIPPED_FAILED_TRANSACTION)

        kinds = classify_logs(transaction.log_messages, self._settings.program_id)
        if not kinds:
            return _skipped(transaction_id, ReconcileStatus.SKIPPED_NO_EVENTS)

        located = locate_account(
            transaction.account_keys,
            reader=self._reader,
            is_mirrored=lambda address: self._repository.account_exists(address=address),
        )
        if located is None:
            _LOGGER.debug("No managed account referenced: transaction_id=%s", transaction_id)
            return _skipped(transaction_id, ReconcileStatus.SKIPPED_NO_ACCOUNT)
        if located.ledger_error is not None and _SNAPSHOT_KINDS.intersection(kinds):
            raise located.ledger_error

        with log_context({fields.ACCOUNT_ADDRESS: located.address}):
            with self._locks.hold(
                located.address,
                timeout_seconds=self._settings.lock_timeout_seconds,
            ):
                recorded = self._unit_of_work.run(
                    lambda session: self._apply(
                        session,
                        transaction_id=transaction_id,
                        transaction=transaction,
                        located=located,
                        kinds=kinds,
                    )
                )

        if recorded is None:
            _LOGGER.info("Transaction already indexed: transaction_id=%s", transaction_id)
            return ReconcileOutcome(
                transaction_id=transaction_id,
                status=ReconcileStatus.DUPLICATE,
                account_address=located.address,
            )
        _LOGGER.info(
            "Indexed transaction: transaction_id=%s account_address=%s events=%s",
            transaction_id,
            located.address,
            ",".join(kind.value for kind in recorded),
        )
        return ReconcileOutcome(
            transaction_id=transaction_id,
            status=ReconcileStatus.INDEXED,
            account_address=located.address,
            event_kinds=tuple(recorded),
        )

    def _apply(
        self,
        session: MirrorSession,
        *,
        transaction_id: str,
        transaction: TransactionRecord,
        located: LocatedAccount,
        kinds: list[ClassifiedKind],
    ) -> list[EventKind] | None:
        """Apply all kinds inside one unit of work; ``None`` means already applied."""
        account = session.get_account_for_update(address=located.address)
        if account is None:
            if located.snapshot is None:
                raise LookupError(f"mirrored account {located.address} is missing")
            account = session.insert_account(snapshot=located.snapshot)
        if session.has_events(account_id=account.id, transaction_id=transaction_id):
            return None
        if located.snapshot is not None:
            # The locating read may predate a writer that committed while
            # this one waited for the account lock.
            located = replace(
                located,
                snapshot=self._reader.fetch_managed_account(located.address),
            )

        state = _Pass(
            transaction_id=transaction_id,
            transaction=transaction,
            located=located,
            account_id=account.id,
            closed=account.status is AccountStatus.CLOSED,
        )
        for index, kind in enumerate(kinds):
            self._apply_kind(session, state, index, kind)

        snapshot = located.snapshot
        if snapshot is not None and not state.closed:
            if ClassifiedKind.ACCOUNT_CREATED in kinds:
                _resync_operators(session, account_id=state.account_id, snapshot=snapshot)
            if state.unresolved_removal:
                for address in stale_operators(
                    snapshot.operators,
                    session.list_operators(account_id=state.account_id),
                ):
                    session.delete_operator(account_id=state.account_id, address=address)
        return state.recorded

    def _apply_kind(
        self,
        session: MirrorSession,
        state: _Pass,
        index: int,
        kind: ClassifiedKind,
    ) -> None:
        snapshot = state.located.snapshot
        payload: dict[str, str] | None = None

        if kind is ClassifiedKind.PAUSE_CHANGED:
            if snapshot is None:
                _LOGGER.info("Pause direction unknown without account state: index=%d", index)
                return
            event_kind = EventKind.PAUSED if snapshot.is_paused else EventKind.UNPAUSED
        else:
            event_kind = _DIRECT_KINDS[kind]

        if kind is ClassifiedKind.ACCOUNT_CLOSED:
            if not state.closed:
                session.set_account_status(account_id=state.account_id, status=AccountStatus.CLOSED)
                state.closed = True
            session.delete_operators(account_id=state.account_id)
        elif kind in (ClassifiedKind.DEPOSIT, ClassifiedKind.TRANSFER):
            delta = extract_balance_delta(
                state.transaction.pre_token_balances,
                state.transaction.post_token_balances,
            )
            if delta is not None:
                party = "sender" if kind is ClassifiedKind.DEPOSIT else "recipient"
                payload = {party: delta.counterparty, "amount": str(delta.amount)}
        elif kind is ClassifiedKind.OPERATOR_ADDED and snapshot is not None:
            mirrored = session.list_operators(account_id=state.account_id)
            added = find_added_operator(snapshot.operators, mirrored)
            if added is not None:
                payload = {"operator": added.address, "per_tx_limit": str(added.per_tx_limit)}
                if not state.closed:
                    session.insert_operator(
                        account_id=state.account_id,
                        address=added.address,
                        per_tx_limit=added.per_tx_limit,
                    )
        elif kind is ClassifiedKind.OPERATOR_REMOVED and snapshot is not None:
            mirrored = session.list_operators(account_id=state.account_id)
            removed = find_removed_operator(snapshot.operators, mirrored)
            if removed is None:
                state.unresolved_removal = True
            else:
                payload = {"operator": removed}
                session.delete_operator(account_id=state.account_id, address=removed)

        session.append_event(
            account_id=state.account_id,
            kind=event_kind,
            transaction_id=state.transaction_id,
            instruction_index=index,
            actor=state.transaction.fee_payer,
            payload=payload,
        )
        state.recorded.append(event_kind)


def _resync_operators(
    session: MirrorSession,
    *,
    account_id: str,
    snapshot: AccountSnapshot,
) -> None:
    """Insert every on-chain operator slot the mirror lacks."""
    mirrored = set(session.list_operators(account_id=account_id))
    for slot in snapshot.operators:
        if slot.address in mirrored:
            continue
        mirrored.add(slot.address)
        session.insert_operator(
            account_id=account_id,
            address=slot.address,
            per_tx_limit=slot.per_tx_limit,
        )


def _skipped(transaction_id: str, status: ReconcileStatus) -> ReconcileOutcome:
    return ReconcileOutcome(transaction_id=transaction_id, status=status)


def _is_retryable(exc: Exception) -> bool:
    """Return whether redelivering the transaction may succeed."""
    if isinstance(exc, (LedgerUnavailableError, TimeoutError)):
        return True
    if is_database_error(exc):
        return normalize_postgres_error(exc).retryable
    return False
