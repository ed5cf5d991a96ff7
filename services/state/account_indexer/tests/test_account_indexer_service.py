"""Behavior tests for the Account Indexer Service public API."""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

from packages.mirror_shared.envelope import EnvelopeKind, new_meta
from packages.mirror_shared.errors import ErrorCategory, codes
from packages.mirror_shared.locks import KeyedLock
from resources.adapters.ledger_rpc import LedgerRpcHealthResult
from services.state.account_indexer.domain import (
    AccountStatus,
    EventKind,
    ReconcileStatus,
)
from services.state.account_indexer.implementation import DefaultAccountIndexerService
from services.state.account_indexer.reconciler import Reconciler
from services.state.account_indexer.tests.support import (
    ACCOUNT,
    OP1,
    OP2,
    OWNER,
    FakeLedgerReader,
    InMemoryMirror,
    settings,
    snapshot,
    transaction,
)


class _FakeLedger:
    """Ledger adapter double reporting configurable readiness."""

    def __init__(self) -> None:
        self.ready = True

    def get_account_info(self, *, address: str) -> None:
        del address
        return None

    def health(self) -> LedgerRpcHealthResult:
        return LedgerRpcHealthResult(
            adapter_ready=self.ready,
            detail="ok" if self.ready else "node behind",
        )


class _FailingRepository(InMemoryMirror):
    def account_exists(self, *, address: str) -> bool:
        del address
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    def get_account(self, *, address: str):
        del address
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


def _meta() -> object:
    """Return valid envelope metadata for service test requests."""
    return new_meta(kind=EnvelopeKind.COMMAND, source="test", principal="operator")


def _service(
    mirror: InMemoryMirror | None = None,
    **setting_overrides: object,
) -> tuple[DefaultAccountIndexerService, FakeLedgerReader, InMemoryMirror, _FakeLedger]:
    """Build a deterministic service with in-memory dependencies."""
    reader = FakeLedgerReader()
    mirror = mirror or InMemoryMirror()
    ledger = _FakeLedger()
    service_settings = settings(**setting_overrides)
    service = DefaultAccountIndexerService(
        settings=service_settings,
        repository=mirror,
        reconciler=Reconciler(
            reader=reader,
            repository=mirror,
            unit_of_work=mirror,
            locks=KeyedLock(),
            settings=service_settings,
        ),
        ledger=ledger,
    )
    return service, reader, mirror, ledger


def _seed(service: DefaultAccountIndexerService, reader: FakeLedgerReader) -> None:
    reader.accounts[ACCOUNT] = snapshot(operators=[(OP1, 100)])
    result = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="tx-create",
        transaction=transaction("CreateAccount"),
    )
    assert result.ok is True


def test_reconcile_then_query_account_and_events() -> None:
    """Reconciled state is readable through the query API."""
    service, reader, _mirror, _ledger = _service()
    _seed(service, reader)

    reconciled = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="tx-deposit",
        transaction=transaction("Deposit", post=[(1, OP2, 75)]),
    )
    account = service.get_account(meta=_meta(), address=ACCOUNT)
    by_owner = service.list_accounts_by_owner(meta=_meta(), owner=OWNER)
    by_operator = service.list_accounts_by_operator(meta=_meta(), operator=OP1)
    events = service.list_account_events(meta=_meta(), address=ACCOUNT)
    deposits = service.list_account_events(
        meta=_meta(), address=ACCOUNT, event_kind=EventKind.DEPOSIT, limit=5
    )

    assert reconciled.ok is True
    assert reconciled.value is not None
    assert reconciled.value.status is ReconcileStatus.INDEXED
    assert account.value is not None
    assert account.value.status is AccountStatus.ACTIVE
    assert [op.address for op in account.value.operators] == [OP1]
    assert [item.address for item in by_owner.value or []] == [ACCOUNT]
    assert [item.address for item in by_operator.value or []] == [ACCOUNT]
    assert [event.kind for event in events.value or []] == [
        EventKind.DEPOSIT,
        EventKind.ACCOUNT_CREATED,
    ]
    assert [event.payload for event in deposits.value or []] == [
        {"sender": OP2, "amount": "75"}
    ]


def test_skipped_transaction_is_a_successful_outcome() -> None:
    """Non-applicable transactions succeed with a skip status."""
    service, _reader, _mirror, _ledger = _service()

    result = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="tx-none",
        transaction=transaction("Deposit"),
    )

    assert result.ok is True
    assert result.value is not None
    assert result.value.status is ReconcileStatus.SKIPPED_NO_ACCOUNT


def test_retryable_reconcile_failure_maps_to_dependency_error() -> None:
    """Ledger outages surface as retryable dependency errors with the outcome."""
    service, reader, _mirror, _ledger = _service()
    reader.unavailable.add(ACCOUNT)

    result = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="tx-create",
        transaction=transaction("CreateAccount"),
    )

    assert result.ok is False
    assert result.errors[0].category is ErrorCategory.DEPENDENCY
    assert result.errors[0].retryable is True
    assert result.value is not None
    assert result.value.status is ReconcileStatus.FAILED


def test_logic_fault_maps_to_internal_error() -> None:
    """Non-retryable failures surface as internal errors."""
    mirror = InMemoryMirror()
    service, reader, _mirror, _ledger = _service(mirror)
    reader.accounts[ACCOUNT] = snapshot()
    mirror.raise_on_run = RuntimeError("boom")

    result = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="tx-create",
        transaction=transaction("CreateAccount"),
    )

    assert result.ok is False
    assert result.errors[0].category is ErrorCategory.INTERNAL
    assert result.errors[0].code == codes.UNEXPECTED_EXCEPTION


def test_reconcile_rejects_blank_transaction_id() -> None:
    """Request validation runs before any reconciliation."""
    service, reader, _mirror, _ledger = _service()

    result = service.reconcile_transaction(
        meta=_meta(),
        transaction_id="  ",
        transaction=transaction("CreateAccount"),
    )

    assert result.ok is False
    assert result.errors[0].code == codes.INVALID_ARGUMENT
    assert reader.calls == []


def test_invalid_metadata_is_rejected() -> None:
    """Envelope metadata must be complete."""
    service, _reader, _mirror, _ledger = _service()
    meta = new_meta(kind=EnvelopeKind.UNSPECIFIED, source="test", principal="operator")

    result = service.get_account(meta=meta, address=ACCOUNT)

    assert result.ok is False
    assert result.errors[0].category is ErrorCategory.VALIDATION


def test_unknown_account_is_not_found() -> None:
    """Missing accounts return a not-found error."""
    service, _reader, _mirror, _ledger = _service()

    result = service.get_account(meta=_meta(), address=ACCOUNT)

    assert result.ok is False
    assert result.errors[0].code == codes.RESOURCE_NOT_FOUND


def test_malformed_address_is_invalid() -> None:
    """Addresses must be base58 public keys."""
    service, _reader, _mirror, _ledger = _service()

    result = service.list_accounts_by_operator(meta=_meta(), operator="not-an-address")

    assert result.ok is False
    assert result.errors[0].code == codes.INVALID_ARGUMENT
    assert result.errors[0].metadata["field"] == "operator"


def test_events_of_unknown_account_are_empty() -> None:
    """Listing events never fails for an unmirrored account."""
    service, _reader, _mirror, _ledger = _service()

    result = service.list_account_events(meta=_meta(), address=ACCOUNT)

    assert result.ok is True
    assert result.value == []


def test_event_limit_is_bounded() -> None:
    """Limits above the configured maximum are rejected."""
    service, _reader, _mirror, _ledger = _service(
        default_event_list_limit=10, max_event_list_limit=20
    )

    too_many = service.list_account_events(meta=_meta(), address=ACCOUNT, limit=21)
    zero = service.list_account_events(meta=_meta(), address=ACCOUNT, limit=0)

    assert too_many.ok is False
    assert too_many.errors[0].metadata["field"] == "limit"
    assert zero.ok is False


def test_database_failure_is_normalized() -> None:
    """Postgres outages map to retryable dependency errors."""
    service, _reader, _mirror, _ledger = _service(_FailingRepository())

    result = service.get_account(meta=_meta(), address=ACCOUNT)

    assert result.ok is False
    assert result.errors[0].category is ErrorCategory.DEPENDENCY
    assert result.errors[0].retryable is True


def test_health_reports_ledger_degradation() -> None:
    """An unready ledger degrades health without failing it."""
    service, _reader, _mirror, ledger = _service()

    healthy = service.health(meta=_meta())
    ledger.ready = False
    degraded = service.health(meta=_meta())

    assert healthy.value is not None
    assert healthy.value.ledger_ready is True
    assert healthy.value.detail == "ok"
    assert degraded.ok is True
    assert degraded.value is not None
    assert degraded.value.ledger_ready is False
    assert degraded.value.detail == "ledger degraded: node behind"


def test_health_fails_when_store_is_down() -> None:
    """Mirror store outages fail health."""
    service, _reader, _mirror, _ledger = _service(_FailingRepository())

    result = service.health(meta=_meta())

    assert result.ok is False
    assert result.errors[0].category is ErrorCategory.DEPENDENCY
