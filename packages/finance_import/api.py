# ruff: noqa: I001
"""Public service layer for ``finance_import``.

These functions are the stable surface used by the CLI and by tests. They
own the import lifecycle (``pending`` → ``complete``/``failed`` →
``reverted``) and the database transaction boundaries around it; the
importers themselves only add and flush.

Deletes are explicit: reverting an import removes its entries, their subtype
rows and tag links, and its holdings with plain ``DELETE`` statements rather
than relying on ORM lifecycle hooks.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.finance import (
    Account,
    Entry,
    Holding,
    Trade,
    Transaction,
    Valuation,
    transaction_tags,
)
from db.models.imports import Import, ImportMapping
from .errors import ImportNotPublishableError, ImportPipelineError
from .importers import importer_class, importer_for
from .logging_setup import get_logger
from .mappings import Mappable
from .models import ImportResult, ImportSettings, ValidationResult
from .securities import SecurityResolver

_logger = get_logger("finance_import.api")


def csv_template(kind: str, *, include_account: bool = True) -> str:
    """Example CSV for ``kind``; omit the account column for single-account imports."""

    return importer_class(kind).render_template(include_account=include_account)


def create_import(
    session: Session,
    *,
    kind: str,
    csv_text: str,
    account: Account | int | None = None,
    column_map: Mapping[str, str] | None = None,
    **settings: Any,
) -> Import:
    """Create a ``pending`` import from raw CSV text.

    Input
    -----
    kind:
        ``"transaction"``, ``"trade"`` or ``"portfolio_allocation"``.
    csv_text:
        Raw file contents including the header row.
    account:
        Target account (instance or id). When ``None`` each row names its
        account and an account mapping step is required.
    column_map:
        Field key → CSV header label overrides.
    settings:
        Parsing settings accepted by :class:`ImportSettings`.

    Raises
    ------
    UnknownImportKindError, pydantic.ValidationError, csv.Error,
    MaxRowCountExceededError
        The file is parsed once up front so structural problems surface
        before anything is written.
    """

    importer_cls = importer_class(kind)
    parsed = ImportSettings(**settings)
    account_id = account.id if isinstance(account, Account) else account

    imp = Import(
        kind=kind,
        raw_file_str=csv_text,
        account_id=account_id,
        column_map=dict(column_map or {}),
        **parsed.model_dump(),
    )
    rows = importer_cls(imp).rows
    session.add(imp)
    session.flush()
    _logger.info("import_created import_id=%s kind=%s rows=%d", imp.id, kind, len(rows))
    return imp


def check(imp: Import) -> ValidationResult:
    return importer_for(imp).validate()


def sync_mappings(session: Session, imp: Import) -> list[ImportMapping]:
    return importer_for(imp).sync_mappings(session)


def update_mapping(
    session: Session,
    mapping: ImportMapping,
    *,
    mappable: Mappable | None = None,
    create_when_empty: bool | None = None,
    value: str | None = None,
) -> ImportMapping:
    """Point ``mapping`` at ``mappable`` or change how it creates one."""

    if mappable is not None:
        mapping.mappable_id = mappable.id
    elif create_when_empty is not None:
        mapping.mappable_id = None
    if create_when_empty is not None:
        mapping.create_when_empty = create_when_empty
    if value is not None:
        mapping.value = value
    session.flush()
    return mapping


def dry_run(session: Session, imp: Import) -> dict[str, int]:
    return importer_for(imp).dry_run(session)


def publish(
    session: Session, imp: Import, *, resolver: SecurityResolver | None = None
) -> ImportResult:
    """Import every row of ``imp`` and commit, or commit nothing.

    ``imp`` must already be committed. On any failure during the import the
    session is rolled back, the import is marked ``failed`` with the error
    message (committed on its own), and the exception is re-raised.

    Raises
    ------
    ImportNotPublishableError
        When row issues or invalid/missing mappings remain. The import is left
        ``pending``.
    """

    importer = importer_for(imp, resolver=resolver)
    validation = importer.validate()
    invalid = importer.invalid_mappings(session)
    if not validation.ok or invalid:
        raise ImportNotPublishableError(validation.issues, invalid_mappings=invalid)

    imp.status = "importing"
    try:
        result = importer.import_(session)
        imp.status = "complete"
        imp.error = None
        session.commit()
    except Exception as e:
        session.rollback()
        imp.status = "failed"
        imp.error = str(e)
        session.commit()
        _logger.error(
            "import_failed import_id=%s kind=%s error=%s: %s",
            imp.id,
            imp.kind,
            e.__class__.__name__,
            e,
        )
        raise
    return result


def _delete_records(session: Session, imp: Import) -> dict[str, int]:
    entry_ids = select(Entry.id).where(Entry.import_id == imp.id)
    transaction_ids = select(Transaction.id).where(Transaction.entry_id.in_(entry_ids))

    session.execute(
        delete(transaction_tags).where(transaction_tags.c.transaction_id.in_(transaction_ids))
    )
    counts: dict[str, int] = {}
    for key, model in (
        ("transactions", Transaction),
        ("trades", Trade),
        ("valuations", Valuation),
    ):
        res = session.execute(delete(model).where(model.entry_id.in_(entry_ids)))
        counts[key] = res.rowcount or 0
    counts["holdings"] = (
        session.execute(delete(Holding).where(Holding.import_id == imp.id)).rowcount or 0
    )
    counts["entries"] = (
        session.execute(delete(Entry).where(Entry.import_id == imp.id)).rowcount or 0
    )
    # Bulk deletes bypass the identity map.
    session.expire_all()
    return counts


def revert(session: Session, imp: Import) -> dict[str, int]:
    """Remove everything a completed import created and mark it ``reverted``.

    Accounts, categories and tags created through mappings are kept.
    """

    if imp.status != "complete":
        raise ImportPipelineError(f"only complete imports can be reverted (status={imp.status})")

    imp.status = "reverting"
    try:
        counts = _delete_records(session, imp)
        imp.status = "reverted"
        session.commit()
    except Exception as e:
        session.rollback()
        imp.status = "revert_failed"
        imp.error = str(e)
        session.commit()
        _logger.error("revert_failed import_id=%s error=%s", imp.id, e.__class__.__name__)
        raise
    _logger.info("import_reverted import_id=%s deleted=%s", imp.id, counts)
    return counts


def delete_import(session: Session, imp: Import) -> None:
    """Delete ``imp`` with its mappings and any records it created."""

    import_id = imp.id
    _delete_records(session, imp)
    session.execute(delete(ImportMapping).where(ImportMapping.import_id == import_id))
    session.execute(delete(Import).where(Import.id == import_id))
    session.commit()
    _logger.info("import_deleted import_id=%s", import_id)


__all__ = [
    "check",
    "create_import",
    "csv_template",
    "delete_import",
    "dry_run",
    "publish",
    "revert",
    "sync_mappings",
    "update_mapping",
]
