"""db: shared database library (SQLAlchemy/Alembic).

Public exports
--------------
- ``Base`` and ``metadata`` for Alembic autogenerate/targeting
- ORM models in ``db.models`` (re-exported for convenience)
- Engine/session helpers in ``db.client``
"""

from __future__ import annotations

from .models import (
    Account,
    Base,
    Category,
    Chat,
    Entry,
    Holding,
    Import,
    ImportMapping,
    Security,
    Tag,
    Trade,
    Transaction,
    Valuation,
)

# Re-export SQLAlchemy metadata for Alembic's env.py
metadata = Base.metadata

__all__ = [
    "Base",
    "metadata",
    "Account",
    "Category",
    "Tag",
    "Security",
    "Entry",
    "Transaction",
    "Trade",
    "Valuation",
    "Holding",
    "Import",
    "ImportMapping",
    "Chat",
]
