"""SQLAlchemy table definitions owned by Account Indexer Service."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from packages.mirror_shared.ids import ulid_primary_key_column
from services.state.account_indexer.domain import AccountStatus, EventKind

ADDRESS_LENGTH = 44

metadata = MetaData()


def _in_check(column: str, values: list[str]) -> str:
    quoted = ", ".join(f"'{value}'" for value in values)
    return f"{column} IN ({quoted})"


ACCOUNT_STATUS_CHECK = _in_check("status", [status.value for status in AccountStatus])
EVENT_KIND_CHECK = _in_check("kind", [kind.value for kind in EventKind])

managed_accounts = Table(
    "managed_accounts",
    metadata,
    ulid_primary_key_column("id", table_name="managed_accounts"),
    Column("address", String(ADDRESS_LENGTH), nullable=False),
    Column("owner", String(ADDRESS_LENGTH), nullable=False),
    Column("mint", String(ADDRESS_LENGTH), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("address", name="uq_managed_accounts_address"),
    CheckConstraint(ACCOUNT_STATUS_CHECK, name="ck_managed_accounts_status"),
    Index("ix_managed_accounts_owner", "owner"),
)

account_operators = Table(
    "account_operators",
    metadata,
    ulid_primary_key_column("id", table_name="account_operators"),
    Column(
        "account_id",
        LargeBinary(16),
        ForeignKey("managed_accounts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("address", String(ADDRESS_LENGTH), nullable=False),
    Column("per_tx_limit", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("account_id", "address", name="uq_account_operators_account_operator"),
    Index("ix_account_operators_address", "address"),
)

account_events = Table(
    "account_events",
    metadata,
    ulid_primary_key_column("id", table_name="account_events"),
    Column(
        "account_id",
        LargeBinary(16),
        ForeignKey("managed_accounts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("kind", String(32), nullable=False),
    Column("transaction_id", String(128), nullable=False),
    Column("instruction_index", Integer, nullable=False),
    Column("actor", String(ADDRESS_LENGTH), nullable=False),
    Column("payload", JSON().with_variant(JSONB(), "postgresql"), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint(
        "account_id",
        "transaction_id",
        "instruction_index",
        name="uq_account_events_instruction",
    ),
    CheckConstraint(EVENT_KIND_CHECK, name="ck_account_events_kind"),
    CheckConstraint("instruction_index >= 0", name="ck_account_events_index_nonnegative"),
    Index("ix_account_events_account_created", "account_id", "created_at"),
)
