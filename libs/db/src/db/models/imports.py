from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .finance import Account, Base


# ---------------------------
# Import jobs
# ---------------------------


class Import(Base):
    """One uploaded CSV file and the settings used to interpret it.

    Parsed rows are never stored; they are rebuilt from ``raw_file_str`` each
    time the import is validated, previewed or published.
    """

    __tablename__ = "imports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    # When set, every row posts to this account and no account mapping step
    # is offered.
    account_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    raw_file_str: Mapped[str] = mapped_column(Text, nullable=False)
    # field key -> CSV header label (e.g. {"date": "Posted On"})
    column_map: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    date_format: Mapped[str] = mapped_column(String, nullable=False, default="%m/%d/%Y")
    number_format: Mapped[str] = mapped_column(String, nullable=False, default="1,234.56")
    signage_convention: Mapped[str] = mapped_column(
        String, nullable=False, default="inflows_positive"
    )
    amount_type_strategy: Mapped[str] = mapped_column(
        String, nullable=False, default="signed_amount"
    )
    amount_type_inflow_value: Mapped[str | None] = mapped_column(String, nullable=True)
    col_sep: Mapped[str] = mapped_column(String(1), nullable=False, default=",")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    account: Mapped[Account | None] = relationship()

    __table_args__ = (
        CheckConstraint(
            "kind in ('transaction','trade','portfolio_allocation')",
            name="ck_imports_kind",
        ),
        CheckConstraint(
            "status in ('pending','importing','complete','failed','reverting','reverted',"
            "'revert_failed')",
            name="ck_imports_status",
        ),
    )


class ImportMapping(Base):
    """Resolution of one raw CSV label to an entity of ``mapping_type``.

    ``mappable_id`` points into ``accounts``, ``categories`` or ``tags``
    depending on ``mapping_type``. When it is NULL and ``create_when_empty``
    is true, publishing creates a new entity named after ``key``.
    """

    __tablename__ = "import_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    import_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("imports.id", ondelete="CASCADE"), nullable=False, index=True
    )
    mapping_type: Mapped[str] = mapped_column(String, nullable=False)
    key: Mapped[str] = mapped_column(String, nullable=False)
    mappable_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    create_when_empty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    # Account mappings only: accountable type used when creating the account.
    value: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("import_id", "mapping_type", "key", name="uq_import_mappings_key"),
        CheckConstraint(
            "mapping_type in ('account','category','tag')",
            name="ck_import_mappings_type",
        ),
    )


__all__ = ["Import", "ImportMapping"]
