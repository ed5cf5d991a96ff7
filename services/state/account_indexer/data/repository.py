"""Postgres repository and session for Account Indexer Service state."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from packages.mirror_shared.ids import generate_ulid_bytes, ulid_bytes_to_str, ulid_str_to_bytes
from resources.substrates.postgres.schema_session import ServiceSchemaSessionProvider
from services.state.account_indexer.domain import (
    AccountRecord,
    AccountSnapshot,
    AccountStatus,
    EventKind,
    EventRecord,
    OperatorRecord,
)
from services.state.account_indexer.interfaces import AccountRepository, MirrorSession

from .schema import account_events, account_operators, managed_accounts


def _utcnow() -> datetime:
    return datetime.now(UTC)


class PostgresAccountRepository(AccountRepository):
    """Read-side SQL repository over service-owned schema tables."""

    def __init__(self, sessions: ServiceSchemaSessionProvider) -> None:
        self._sessions = sessions

    def account_exists(self, *, address: str) -> bool:
        """Return whether one account row exists for ``address``."""
        with self._sessions.session() as session:
            row = session.execute(
                select(managed_accounts.c.id).where(managed_accounts.c.address == address)
            ).first()
            return row is not None

    def get_account(self, *, address: str) -> AccountRecord | None:
        """Read one account row with its operators."""
        with self._sessions.session() as session:
            accounts = _load_accounts(
                session, select(managed_accounts).where(managed_accounts.c.address == address)
            )
            return accounts[0] if accounts else None

    def list_accounts_by_owner(self, *, owner: str) -> list[AccountRecord]:
        """List accounts owned by ``owner``, oldest first."""
        with self._sessions.session() as session:
            return _load_accounts(
                session,
                select(managed_accounts)
                .where(managed_accounts.c.owner == owner)
                .order_by(managed_accounts.c.created_at, managed_accounts.c.id),
            )

    def list_accounts_by_operator(self, *, operator: str) -> list[AccountRecord]:
        """List accounts with ``operator`` among their operators, oldest first."""
        delegating = select(account_operators.c.account_id).where(
            account_operators.c.address == operator
        )
        with self._sessions.session() as session:
            return _load_accounts(
                session,
                select(managed_accounts)
                .where(managed_accounts.c.id.in_(delegating))
                .order_by(managed_accounts.c.created_at, managed_accounts.c.id),
            )

    def list_events(
        self,
        *,
        address: str,
        kind: EventKind | None,
        limit: int,
    ) -> list[EventRecord]:
        """List events for one account address, newest first."""
        stmt = (
            select(account_events, managed_accounts.c.address.label("account_address"))
            .join(managed_accounts, managed_accounts.c.id == account_events.c.account_id)
            .where(managed_accounts.c.address == address)
        )
        if kind is not None:
            stmt = stmt.where(account_events.c.kind == kind.value)
        stmt = stmt.order_by(
            account_events.c.created_at.desc(),
            account_events.c.instruction_index.desc(),
            account_events.c.id.desc(),
        ).limit(limit)
        with self._sessions.session() as session:
            return [_to_event(row) for row in session.execute(stmt).mappings().all()]


class SqlMirrorSession(MirrorSession):
    """Mirror writes bound to one open SQLAlchemy session."""

    def __init__(self, session: Session, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._session = session
        self._clock = clock

    def get_account_for_update(self, *, address: str) -> AccountRecord | None:
        """Read and row-lock one account by address."""
        row = (
            self._session.execute(
                select(managed_accounts)
                .where(managed_accounts.c.address == address)
                .with_for_update()
            )
            .mappings()
            .one_or_none()
        )
        return None if row is None else _to_account(row, operators=())

    def insert_account(self, *, snapshot: AccountSnapshot) -> AccountRecord:
        """Insert one ACTIVE account row and return it row-locked.

        A row committed concurrently for the same address is returned instead.
        """
        now = self._clock()
        dialect_insert = (
            sqlite_insert if self._session.get_bind().dialect.name == "sqlite" else pg_insert
        )
        stmt = dialect_insert(managed_accounts).values(
            id=generate_ulid_bytes(),
            address=snapshot.address,
            owner=snapshot.owner,
            mint=snapshot.mint,
            status=AccountStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        self._session.execute(
            stmt.on_conflict_do_nothing(index_elements=[managed_accounts.c.address])
        )
        account = self.get_account_for_update(address=snapshot.address)
        if account is None:
            raise LookupError(f"account {snapshot.address} vanished after insert")
        return account

    def set_account_status(self, *, account_id: str, status: AccountStatus) -> None:
        """Update one account status and bump its update time."""
        self._session.execute(
            update(managed_accounts)
            .where(managed_accounts.c.id == ulid_str_to_bytes(account_id))
            .values(status=status.value, updated_at=self._clock())
        )

    def list_operators(self, *, account_id: str) -> dict[str, str]:
        """Return operator address to limit, in insertion order."""
        rows = self._session.execute(
            select(account_operators.c.address, account_operators.c.per_tx_limit)
            .where(account_operators.c.account_id == ulid_str_to_bytes(account_id))
            .order_by(account_operators.c.created_at, account_operators.c.id)
        ).all()
        return {str(row.address): str(row.per_tx_limit) for row in rows}

    def insert_operator(self, *, account_id: str, address: str, per_tx_limit: int) -> None:
        """Insert one operator row for an account."""
        self._session.execute(
            insert(account_operators).values(
                id=generate_ulid_bytes(),
                account_id=ulid_str_to_bytes(account_id),
                address=address,
                per_tx_limit=str(per_tx_limit),
                created_at=self._clock(),
            )
        )
        self._touch(account_id)

    def delete_operator(self, *, account_id: str, address: str) -> bool:
        """Delete one operator row and return whether it existed."""
        result = self._session.execute(
            delete(account_operators).where(
                account_operators.c.account_id == ulid_str_to_bytes(account_id),
                account_operators.c.address == address,
            )
        )
        deleted = int(result.rowcount or 0) > 0
        if deleted:
            self._touch(account_id)
        return deleted

    def delete_operators(self, *, account_id: str) -> int:
        """Delete all operator rows of one account."""
        result = self._session.execute(
            delete(account_operators).where(
                account_operators.c.account_id == ulid_str_to_bytes(account_id)
            )
        )
        return int(result.rowcount or 0)

    def has_events(self, *, account_id: str, transaction_id: str) -> bool:
        """Return whether any event row exists for this account and transaction."""
        row = self._session.execute(
            select(account_events.c.id)
            .where(
                account_events.c.account_id == ulid_str_to_bytes(account_id),
                account_events.c.transaction_id == transaction_id,
            )
            .limit(1)
        ).first()
        return row is not None

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
        """Insert one event row."""
        self._session.execute(
            insert(account_events).values(
                id=generate_ulid_bytes(),
                account_id=ulid_str_to_bytes(account_id),
                kind=kind.value,
                transaction_id=transaction_id,
                instruction_index=instruction_index,
                actor=actor,
                payload=payload,
                created_at=self._clock(),
            )
        )

    def _touch(self, account_id: str) -> None:
        self._session.execute(
            update(managed_accounts)
            .where(managed_accounts.c.id == ulid_str_to_bytes(account_id))
            .values(updated_at=self._clock())
        )


def _load_accounts(session: Session, stmt: Any) -> list[AccountRecord]:
    """Run one account query and attach operators to each row."""
    rows = session.execute(stmt).mappings().all()
    if not rows:
        return []
    operators = _operators_by_account(session, [row["id"] for row in rows])
    return [_to_account(row, operators=operators.get(bytes(row["id"]), ())) for row in rows]


def _operators_by_account(
    session: Session,
    account_ids: Iterable[bytes],
) -> dict[bytes, tuple[OperatorRecord, ...]]:
    rows = (
        session.execute(
            select(account_operators)
            .where(account_operators.c.account_id.in_(list(account_ids)))
            .order_by(account_operators.c.created_at, account_operators.c.id)
        )
        .mappings()
        .all()
    )
    grouped: dict[bytes, list[OperatorRecord]] = {}
    for row in rows:
        grouped.setdefault(bytes(row["account_id"]), []).append(
            OperatorRecord(
                address=str(row["address"]),
                per_tx_limit=str(row["per_tx_limit"]),
                created_at=_row_dt(row, "created_at"),
            )
        )
    return {key: tuple(value) for key, value in grouped.items()}


def _to_account(
    row: Any,
    *,
    operators: tuple[OperatorRecord, ...],
) -> AccountRecord:
    """Map one SQL row to a strict domain account record."""
    return AccountRecord(
        id=ulid_bytes_to_str(bytes(row["id"])),
        address=str(row["address"]),
        owner=str(row["owner"]),
        mint=str(row["mint"]),
        status=AccountStatus(str(row["status"])),
        operators=operators,
        created_at=_row_dt(row, "created_at"),
        updated_at=_row_dt(row, "updated_at"),
    )


def _to_event(row: Any) -> EventRecord:
    """Map one joined SQL row to a strict domain event record."""
    payload = row["payload"]
    return EventRecord(
        id=ulid_bytes_to_str(bytes(row["id"])),
        account_address=str(row["account_address"]),
        kind=EventKind(str(row["kind"])),
        transaction_id=str(row["transaction_id"]),
        instruction_index=int(row["instruction_index"]),
        actor=str(row["actor"]),
        payload=None if payload is None else {str(k): str(v) for k, v in payload.items()},
        created_at=_row_dt(row, "created_at"),
    )


def _row_dt(row: Any, column: str) -> datetime:
    """Read and normalize one timezone-aware datetime field from SQL row."""
    value = row.get(column)
    if not isinstance(value, datetime):
        raise ValueError(f"expected datetime column for {column}")
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
