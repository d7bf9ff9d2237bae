"""Shared SQLAlchemy models registry for the workspace database.

Includes the ledger models, CSV import jobs and their label mappings, and the
chat records used by ``finance_import``.
"""

from .chat import Chat
from .finance import (
    Account,
    Base,
    Category,
    Entry,
    Holding,
    Security,
    Tag,
    Trade,
    Transaction,
    Valuation,
    transaction_tags,
)
from .imports import Import, ImportMapping

__all__ = [
    "Base",
    "Account",
    "Category",
    "Tag",
    "Security",
    "Entry",
    "Transaction",
    "Trade",
    "Valuation",
    "Holding",
    "transaction_tags",
    "Import",
    "ImportMapping",
    "Chat",
]
