"""In-memory doubles and builders shared by Account Indexer tests."""

from __future__ import annotations

import copy
import struct
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TypeVar

from solders.pubkey import Pubkey

from packages.mirror_shared.ids import generate_ulid_str
from resources.adapters.ledger_rpc import LedgerAccountInfo
from services.state.account_indexer.codec import account_discriminator
from services.state.account_indexer.config import AccountIndexerSettings
from services.state.account_indexer.domain import (
    AccountRecord,
    AccountSnapshot,
    AccountStatus,
    EventKind,
    EventRecord,
    OperatorRecord,
    OperatorSlot,
    TokenBalance,
    TransactionRecord,
)
from services.state.account_indexer.reader import LedgerUnavailableError

T = TypeVar("T")


def address(seed: int) -> str:
    """Return a deterministic base58 address for ``seed`` in 1..255."""
    return str(Pubkey.from_bytes(bytes([seed]) * 32))


PROGRAM_ID = address(200)
OTHER_PROGRAM_ID = address(201)
FEE_PAYER = address(1)
OWNER = address(2)
MINT = address(3)
ACCOUNT = address(10)
OTHER_ACCOUNT = address(11)
OP1 = address(21)
OP2 = address(22)
OP3 = address(23)


def settings(**overrides: object) -> AccountIndexerSettings:
    """Return service settings bound to the test program id."""
    values: dict[str, object] = {"program_id": PROGRAM_ID, "lock_timeout_seconds": 5.0}
    values.update(overrides)
    return AccountIndexerSettings.model_validate(values)


def encode_account(
    *,
    owner: str = OWNER,
    mint: str = MINT,
    is_paused: bool = False,
    operators: Iterable[tuple[str, int]] = (),
    type_name: str = "ManagedAccount",
    trailing: bytes = b"",
) -> bytes:
    """Encode managed-account bytes the way the ledger program lays them out."""
    slots = list(operators)
    data = bytearray(account_discriminator(type_name))
    data += struct.pack(
        "<BB32s32sBB",
        1,
        254,
        bytes(Pubkey.from_string(owner)),
        bytes(Pubkey.from_string(mint)),
        int(is_paused),
        len(slots),
    )
    for operator, limit in slots:
        data += struct.pack("<32sQ", bytes(Pubkey.from_string(operator)), limit)
    return bytes(data) + trailing


def account_info(
    data: bytes,
    *,
    account: str = ACCOUNT,
    owner_program: str = PROGRAM_ID,
) -> LedgerAccountInfo:
    """Wrap encoded bytes as one ledger account read."""
    return LedgerAccountInfo(
        address=account,
        owner_program=owner_program,
        data=data,
        lamports=1_000_000,
        executable=False,
    )


def snapshot(
    *,
    account: str = ACCOUNT,
    is_paused: bool = False,
    operators: Iterable[tuple[str, int]] = (),
) -> AccountSnapshot:
    """Build decoded post-transaction account state."""
    return AccountSnapshot(
        address=account,
        owner=OWNER,
        mint=MINT,
        is_paused=is_paused,
        operators=tuple(
            OperatorSlot(address=operator, per_tx_limit=limit) for operator, limit in operators
        ),
    )


def program_logs(*instructions: str, program_id: str = PROGRAM_ID) -> list[str]:
    """Render one top-level invocation per instruction name."""
    lines: list[str] = []
    for name in instructions:
        lines.extend(
            [
                f"Program {program_id} invoke [1]",
                f"Program log: Instruction: {name}",
                f"Program {program_id} consumed 4321 of 200000 compute units",
                f"Program {program_id} success",
            ]
        )
    return lines


def transaction(
    *instructions: str,
    accounts: Iterable[str] = (FEE_PAYER, ACCOUNT),
    pre: Iterable[tuple[int, str, int]] = (),
    post: Iterable[tuple[int, str, int]] = (),
    succeeded: bool = True,
) -> TransactionRecord:
    """Build a transaction record invoking the test program."""
    return TransactionRecord(
        log_messages=tuple(program_logs(*instructions)),
        account_keys=tuple(accounts),
        pre_token_balances=tuple(
            TokenBalance(account_index=index, owner=owner, amount=amount)
            for index, owner, amount in pre
        ),
        post_token_balances=tuple(
            TokenBalance(account_index=index, owner=owner, amount=amount)
            for index, owner, amount in post
        ),
        succeeded=succeeded,
    )


class FakeLedgerReader:
    """Managed-account reader backed by a dict of snapshots."""

    def __init__(self) -> None:
        self.accounts: dict[str, AccountSnapshot] = {}
        self.unavailable: set[str] = set()
        self.calls: list[str] = []
        self.barrier: threading.Barrier | None = None

    def fetch_managed_account(self, address: str) -> AccountSnapshot | None:
        self.calls.append(address)
        barrier = self.barrier
        if barrier is not None and address in self.accounts:
            # Only the first read of each racing writer meets at the barrier.
            barrier.wait(timeout=5)
            self.barrier = None
        if address in self.unavailable:
            raise LedgerUnavailableError(f"ledger read failed for {address}")
        return self.accounts.get(address)


@dataclass
class _StoredEvent:
    id: str
    kind: EventKind
    transaction_id: str
    instruction_index: int
    actor: str
    payload: dict[str, str] | None
    created_at: datetime


@dataclass
class _StoredAccount:
    record: AccountRecord
    operators: dict[str, OperatorRecord] = field(default_factory=dict)
    events: list[_StoredEvent] = field(default_factory=list)


class _Clock:
    def __init__(self) -> None:
        self._now = datetime(2026, 1, 1, tzinfo=UTC)
        self._guard = threading.Lock()

    def __call__(self) -> datetime:
        with self._guard:
            self._now += timedelta(milliseconds=1)
            return self._now


class InMemoryMirror:
    """Mirror store fake acting as repository and unit of work.

    Each unit of work runs against a private copy of the store and writes
    back the accounts it touched on commit, so unserialized writers to the
    same account lose updates exactly as they would without row locks.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, _StoredAccount] = {}
        self.commits = 0
        self.raise_on_run: Exception | None = None
        self._guard = threading.Lock()
        self._clock = _Clock()

    # Unit of work

    def run(self, fn: Callable[["_InMemorySession"], T]) -> T:
        if self.raise_on_run is not None:
            raise self.raise_on_run
        with self._guard:
            working = copy.deepcopy(self.accounts)
        session = _InMemorySession(working, clock=self._clock)
        result = fn(session)
        with self._guard:
            for key in session.touched:
                self.accounts[key] = working[key]
            self.commits += 1
        return result

    # Repository

    def account_exists(self, *, address: str) -> bool:
        return address in self.accounts

    def get_account(self, *, address: str) -> AccountRecord | None:
        stored = self.accounts.get(address)
        return None if stored is None else _with_operators(stored)

    def list_accounts_by_owner(self, *, owner: str) -> list[AccountRecord]:
        return [
            _with_operators(stored)
            for stored in self.accounts.values()
            if stored.record.owner == owner
        ]

    def list_accounts_by_operator(self, *, operator: str) -> list[AccountRecord]:
        return [
            _with_operators(stored)
            for stored in self.accounts.values()
            if operator in stored.operators
        ]

    def list_events(
        self,
        *,
        address: str,
        kind: EventKind | None,
        limit: int,
    ) -> list[EventRecord]:
        stored = self.accounts.get(address)
        if stored is None:
            return []
        events = [
            EventRecord(
                id=event.id,
                account_address=address,
                kind=event.kind,
                transaction_id=event.transaction_id,
                instruction_index=event.instruction_index,
                actor=event.actor,
                payload=event.payload,
                created_at=event.created_at,
            )
            for event in reversed(stored.events)
            if kind is None or event.kind is kind
        ]
        return events[:limit]

    # Assertion helpers

    def operators(self, address: str = ACCOUNT) -> dict[str, str]:
        stored = self.accounts[address]
        return {key: value.per_tx_limit for key, value in stored.operators.items()}

    def event_kinds(self, address: str = ACCOUNT) -> list[EventKind]:
        return [event.kind for event in self.accounts[address].events]

    def payloads(self, address: str = ACCOUNT) -> list[dict[str, str] | None]:
        return [event.payload for event in self.accounts[address].events]

    def status(self, address: str = ACCOUNT) -> AccountStatus:
        return self.accounts[address].record.status


class _InMemorySession:
    def __init__(self, accounts: dict[str, _StoredAccount], *, clock: _Clock) -> None:
        self._accounts = accounts
        self._clock = clock
        self.touched: set[str] = set()

    def _by_id(self, account_id: str) -> _StoredAccount:
        for key, stored in self._accounts.items():
            if stored.record.id == account_id:
                self.touched.add(key)
                return stored
        raise KeyError(account_id)

    def get_account_for_update(self, *, address: str) -> AccountRecord | None:
        stored = self._accounts.get(address)
        return None if stored is None else stored.record

    def insert_account(self, *, snapshot: AccountSnapshot) -> AccountRecord:
        existing = self._accounts.get(snapshot.address)
        if existing is not None:
            return existing.record
        now = self._clock()
        record = AccountRecord(
            id=generate_ulid_str(),
            address=snapshot.address,
            owner=snapshot.owner,
            mint=snapshot.mint,
            status=AccountStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )
        self._accounts[snapshot.address] = _StoredAccount(record=record)
        self.touched.add(snapshot.address)
        return record

    def set_account_status(self, *, account_id: str, status: AccountStatus) -> None:
        stored = self._by_id(account_id)
        stored.record = stored.record.model_copy(
            update={"status": status, "updated_at": self._clock()}
        )

    def list_operators(self, *, account_id: str) -> dict[str, str]:
        stored = self._by_id(account_id)
        return {key: value.per_tx_limit for key, value in stored.operators.items()}

    def insert_operator(self, *, account_id: str, address: str, per_tx_limit: int) -> None:
        stored = self._by_id(account_id)
        if address in stored.operators:
            raise ValueError(f"duplicate operator {address}")
        stored.operators[address] = OperatorRecord(
            address=address,
            per_tx_limit=str(per_tx_limit),
            created_at=self._clock(),
        )

    def delete_operator(self, *, account_id: str, address: str) -> bool:
        return self._by_id(account_id).operators.pop(address, None) is not None

    def delete_operators(self, *, account_id: str) -> int:
        stored = self._by_id(account_id)
        count = len(stored.operators)
        stored.operators.clear()
        return count

    def has_events(self, *, account_id: str, transaction_id: str) -> bool:
        stored = self._by_id(account_id)
        return any(event.transaction_id == transaction_id for event in stored.events)

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
        stored = self._by_id(account_id)
        if any(
            event.transaction_id == transaction_id and event.instruction_index == instruction_index
            for event in stored.events
        ):
            raise ValueError("duplicate event")
        stored.events.append(
            _StoredEvent(
                id=generate_ulid_str(),
                kind=kind,
                transaction_id=transaction_id,
                instruction_index=instruction_index,
                actor=actor,
                payload=payload,
                created_at=self._clock(),
            )
        )


def _with_operators(stored: _StoredAccount) -> AccountRecord:
    return stored.record.model_copy(update={"operators": tuple(stored.operators.values())})
