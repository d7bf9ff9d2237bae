# ruff: noqa: I001
"""Ledger core tables: reference entities, imports, entries and subtypes.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-09-14
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("currency", sa.CHAR(3), nullable=False, server_default="USD"),
        sa.Column("accountable_type", sa.String(), nullable=False, server_default="Depository"),
        sa.Column("balance", sa.Numeric(19, 4), nullable=False, server_default="0"),
        _created_at(),
    )
    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        _created_at(),
    )
    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        _created_at(),
    )
    op.create_table(
        "securities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticker", sa.String(), nullable=False),
        sa.Column("exchange_operating_mic", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("offline", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.UniqueConstraint("ticker", "exchange_operating_mic", name="uq_securities_ticker_mic"),
    )

    op.create_table(
        "imports",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("raw_file_str", sa.Text(), nullable=False),
        sa.Column("column_map", sa.JSON(), nullable=False),
        sa.Column("date_format", sa.String(), nullable=False, server_default="%m/%d/%Y"),
        sa.Column("number_format", sa.String(), nullable=False, server_default="1,234.56"),
        sa.Column(
            "signage_convention", sa.String(), nullable=False, server_default="inflows_positive"
        ),
        sa.Column(
            "amount_type_strategy", sa.String(), nullable=False, server_default="signed_amount"
        ),
        sa.Column("amount_type_inflow_value", sa.String(), nullable=True),
        sa.Column("col_sep", sa.String(1), nullable=False, server_default=","),
        sa.Column("error", sa.Text(), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "kind in ('transaction','trade','portfolio_allocation')",
            name="ck_imports_kind",
        ),
        sa.CheckConstraint(
            "status in ('pending','importing','complete','failed','reverting','reverted',"
            "'revert_failed')",
            name="ck_imports_status",
        ),
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("entryable_type", sa.String(), nullable=False),
        sa.Column(
            "import_id",
            sa.Integer(),
            sa.ForeignKey("imports.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
        sa.CheckConstraint(
            "entryable_type in ('Transaction','Trade','Valuation')",
            name="ck_entries_entryable_type",
        ),
    )
    op.create_index("ix_entries_account_id", "entries", ["account_id"])
    op.create_index("ix_entries_import_id", "entries", ["import_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_table(
        "transaction_tags",
        sa.Column(
            "transaction_id",
            sa.Integer(),
            sa.ForeignKey("transactions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "trades",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("security_id", sa.Integer(), sa.ForeignKey("securities.id"), nullable=False),
        sa.Column("qty", sa.Numeric(24, 8), nullable=False),
        sa.Column("price", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
    )
    op.create_index("ix_trades_security_id", "trades", ["security_id"])
    op.create_table(
        "valuations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
    )
    op.create_table(
        "holdings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.Integer(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("security_id", sa.Integer(), sa.ForeignKey("securities.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("qty", sa.Numeric(24, 8), nullable=False),
        sa.Column("price", sa.Numeric(19, 4), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("currency", sa.CHAR(3), nullable=False),
        sa.Column(
            "import_id",
            sa.Integer(),
            sa.ForeignKey("imports.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    op.create_index("ix_holdings_account_id", "holdings", ["account_id"])
    op.create_index("ix_holdings_security_id", "holdings", ["security_id"])
    op.create_index("ix_holdings_import_id", "holdings", ["import_id"])


def downgrade() -> None:
    # Children first to satisfy FKs
    op.drop_table("holdings")
    op.drop_table("valuations")
    op.drop_table("trades")
    op.drop_table("transaction_tags")
    op.drop_table("transactions")
    op.drop_table("entries")
    op.drop_table("imports")
    op.drop_table("securities")
    op.drop_table("tags")
    op.drop_table("categories")
    op.drop_table("accounts")
