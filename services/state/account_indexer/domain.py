"""Domain contracts for Account Indexer Service payloads."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field


class AccountStatus(str, Enum):
    """Lifecycle state of one mirrored managed account."""

    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class ClassifiedKind(str, Enum):
    """Instruction outcome as read from program logs.

    ``PAUSE_CHANGED`` is provisional: its direction is only known from the
    post-transaction account state.
    """

    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_CLOSED = "ACCOUNT_CLOSED"
    DEPOSIT = "DEPOSIT"
    TRANSFER = "TRANSFER"
    OPERATOR_ADDED = "OPERATOR_ADDED"
    OPERATOR_REMOVED = "OPERATOR_REMOVED"
    PAUSE_CHANGED = "PAUSE_CHANGED"


class EventKind(str, Enum):
    """Persisted audit event kind."""

    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_CLOSED = "ACCOUNT_CLOSED"
    DEPOSIT = "DEPOSIT"
    TRANSFER = "TRANSFER"
    OPERATOR_ADDED = "OPERATOR_ADDED"
    OPERATOR_REMOVED = "OPERATOR_REMOVED"
    PAUSED = "PAUSED"
    UNPAUSED = "UNPAUSED"


class OperatorSlot(BaseModel):
    """One populated operator slot in on-chain account state."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    per_tx_limit: int = Field(ge=0)


class AccountSnapshot(BaseModel):
    """Decoded post-transaction state of one on-chain managed account."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    owner: str
    mint: str
    is_paused: bool
    operators: tuple[OperatorSlot, ...] = ()


class TokenBalance(BaseModel):
    """Token balance of one transaction account, keyed by account index."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    account_index: int = Field(ge=0)
    owner: str = ""
    amount: int = Field(ge=0)


class TransactionRecord(BaseModel):
    """Finalized transaction evidence supplied by the transaction feed."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    log_messages: tuple[str, ...] | None = None
    account_keys: tuple[str, ...] = ()
    pre_token_balances: tuple[TokenBalance, ...] = ()
    post_token_balances: tuple[TokenBalance, ...] = ()
    succeeded: bool = True

    @property
    def fee_payer(self) -> str:
        """Return the first referenced address, the transaction's actor."""
        return self.account_keys[0] if self.account_keys else ""

    @classmethod
    def from_rpc_result(cls, result: Mapping[str, Any]) -> "TransactionRecord":
        """Build a record from a JSON-RPC ``getTransaction`` result.

        Accepts both ``json`` and ``jsonParsed`` encodings. For ``json``
        encoded versioned transactions, lookup-table addresses from
        ``meta.loadedAddresses`` are appended after the static keys, writable
        first, matching the runtime account index order.
        """
        meta = result.get("meta") or {}
        message = (result.get("transaction") or {}).get("message") or {}

        raw_keys = message.get("accountKeys") or []
        parsed_encoding = any(isinstance(key, Mapping) for key in raw_keys)
        keys = [str(key["pubkey"]) if isinstance(key, Mapping) else str(key) for key in raw_keys]
        loaded = meta.get("loadedAddresses") or {}
        if not parsed_encoding:
            keys.extend(str(key) for key in loaded.get("writable") or [])
            keys.extend(str(key) for key in loaded.get("readonly") or [])

        logs = meta.get("logMessages")
        return cls(
            log_messages=None if logs is None else tuple(str(line) for line in logs),
            account_keys=tuple(keys),
            pre_token_balances=_rpc_balances(meta.get("preTokenBalances")),
            post_token_balances=_rpc_balances(meta.get("postTokenBalances")),
            succeeded=meta.get("err") is None,
        )


def _rpc_balances(raw: object) -> tuple[TokenBalance, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(
        TokenBalance(
            account_index=int(entry["accountIndex"]),
            owner=str(entry.get("owner") or ""),
            amount=int(entry["uiTokenAmount"]["amount"]),
        )
        for entry in raw
    )


class OperatorRecord(BaseModel):
    """Mirrored delegated operator of one account."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str
    per_tx_limit: str
    created_at: datetime


class AccountRecord(BaseModel):
    """Mirrored managed account including its current operators."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    address: str
    owner: str
    mint: str
    status: AccountStatus
    operators: tuple[OperatorRecord, ...] = ()
    created_at: datetime
    updated_at: datetime


class EventRecord(BaseModel):
    """Immutable audit record of one classified occurrence."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    account_address: str
    kind: EventKind
    transaction_id: str
    instruction_index: int
    actor: str
    payload: dict[str, str] | None = None
    created_at: datetime


class ReconcileStatus(str, Enum):
    """Outcome classification of one reconcile call."""

    INDEXED = "INDEXED"
    DUPLICATE = "DUPLICATE"
    SKIPPED_NO_EVENTS = "SKIPPED_NO_EVENTS"
    SKIPPED_NO_ACCOUNT = "SKIPPED_NO_ACCOUNT"
    SKIPPED_FAILED_TRANSACTION = "SKIPPED_FAILED_TRANSACTION"
    FAILED = "FAILED"


class ReconcileOutcome(BaseModel):
    """Observable result of reconciling one transaction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transaction_id: str
    status: ReconcileStatus
    account_address: str | None = None
    event_kinds: tuple[EventKind, ...] = ()
    retryable: bool = False
    detail: str = ""


class HealthStatus(BaseModel):
    """Service and owned dependency readiness payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    substrate_ready: bool
    ledger_ready: bool
    detail: str
