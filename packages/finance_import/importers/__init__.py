"""Importer registry.

``importer_for`` picks the importer class registered for an import's kind.
"""

from __future__ import annotations

from db.models.imports import Import

from ..errors import UnknownImportKindError
from ..securities import SecurityResolver
from .base import Batch, Importer, settings_for
from .portfolio import PortfolioAllocationImporter
from .trades import TradeImporter
from .transactions import TransactionImporter

IMPORTERS: dict[str, type[Importer]] = {
    cls.kind: cls for cls in (TransactionImporter, TradeImporter, PortfolioAllocationImporter)
}


def importer_class(kind: str) -> type[Importer]:
    try:
        return IMPORTERS[kind]
    except KeyError:
        raise UnknownImportKindError(kind) from None


def importer_for(imp: Import, *, resolver: SecurityResolver | None = None) -> Importer:
    return importer_class(imp.kind)(imp, resolver=resolver)


__all__ = [
    "Batch",
    "IMPORTERS",
    "Importer",
    "PortfolioAllocationImporter",
    "TradeImporter",
    "TransactionImporter",
    "importer_class",
    "importer_for",
    "settings_for",
]
