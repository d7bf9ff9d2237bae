# ruff: noqa: I001
"""Import label mappings and chat error bookkeeping.

Revision ID: 0002_import_mappings_chats
Revises: 0001_ledger_core
Create Date: 2026-09-21
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0002_import_mappings_chats"
down_revision: str | None = "0001_ledger_core"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "import_mappings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "import_id",
            sa.Integer(),
            sa.ForeignKey("imports.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("mapping_type", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("mappable_id", sa.Integer(), nullable=True),
        sa.Column("create_when_empty", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("value", sa.String(), nullable=True),
        sa.UniqueConstraint("import_id", "mapping_type", "key", name="uq_import_mappings_key"),
        sa.CheckConstraint(
            "mapping_type in ('account','category','tag')",
            name="ck_import_mappings_type",
        ),
    )
    op.create_index("ix_import_mappings_import_id", "import_mappings", ["import_id"])

    op.create_table(
        "chats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_chats_user_id", "chats", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_chats_user_id", table_name="chats")
    op.drop_table("chats")
    op.drop_index("ix_import_mappings_import_id", table_name="import_mappings")
    op.drop_table("import_mappings")
