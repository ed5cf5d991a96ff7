"""create account mirror tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from services.state.account_indexer.component import account_indexer_schema
from services.state.account_indexer.data.schema import (
    ACCOUNT_STATUS_CHECK,
    EVENT_KIND_CHECK,
)

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _ulid_pk() -> sa.Column:
    return sa.Column("id", postgresql.BYTEA(), primary_key=True, nullable=False)


def _ulid_check(table: str) -> sa.CheckConstraint:
    return sa.CheckConstraint("length(id) = 16", name=f"ck_{table}_id_ulid_16")


def upgrade() -> None:
    """Create account mirror schema objects."""
    schema = account_indexer_schema()

    op.create_table(
        "managed_accounts",
        _ulid_pk(),
        sa.Column("address", sa.String(length=44), nullable=False),
        sa.Column("owner", sa.String(length=44), nullable=False),
        sa.Column("mint", sa.String(length=44), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("address", name="uq_managed_accounts_address"),
        sa.CheckConstraint(ACCOUNT_STATUS_CHECK, name="ck_managed_accounts_status"),
        _ulid_check("managed_accounts"),
        schema=schema,
    )
    op.create_index(
        "ix_managed_accounts_owner", "managed_accounts", ["owner"], schema=schema
    )

    op.create_table(
        "account_operators",
        _ulid_pk(),
        sa.Column(
            "account_id",
            postgresql.BYTEA(),
            sa.ForeignKey(f"{schema}.managed_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("address", sa.String(length=44), nullable=False),
        sa.Column("per_tx_limit", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "account_id", "address", name="uq_account_operators_account_operator"
        ),
        _ulid_check("account_operators"),
        schema=schema,
    )
    op.create_index(
        "ix_account_operators_address", "account_operators", ["address"], schema=schema
    )

    op.create_table(
        "account_events",
        _ulid_pk(),
        sa.Column(
            "account_id",
            postgresql.BYTEA(),
            sa.ForeignKey(f"{schema}.managed_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("transaction_id", sa.String(length=128), nullable=False),
        sa.Column("instruction_index", sa.Integer(), nullable=False),
        sa.Column("actor", sa.String(length=44), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "account_id",
            "transaction_id",
            "instruction_index",
            name="uq_account_events_instruction",
        ),
        sa.CheckConstraint(EVENT_KIND_CHECK, name="ck_account_events_kind"),
        sa.CheckConstraint(
            "instruction_index >= 0", name="ck_account_events_index_nonnegative"
        ),
        _ulid_check("account_events"),
        schema=schema,
    )
    op.create_index(
        "ix_account_events_account_created",
        "account_events",
        ["account_id", "created_at"],
        schema=schema,
    )


def downgrade() -> None:
    """Drop account mirror schema objects."""
    schema = account_indexer_schema()
    op.drop_index("ix_account_events_account_created", "account_events", schema=schema)
    op.drop_table("account_events", schema=schema)
    op.drop_index("ix_account_operators_address", "account_operators", schema=schema)
    op.drop_table("account_operators", schema=schema)
    op.drop_index("ix_managed_accounts_owner", "managed_accounts", schema=schema)
    op.drop_table("managed_accounts", schema=schema)
