# ruff: noqa: I001
"""Shared machinery for the per-kind importers.

An :class:`Importer` wraps one ``db.models.Import`` and knows how to parse
its CSV, validate it, preview it (``dry_run``) and turn it into ledger
records (``import_``). Subclasses declare their columns and example template
and implement :meth:`Importer._build`; everything else lives here.

Transaction ownership: ``import_`` only adds and flushes. The caller commits
or rolls back, so a failure anywhere leaves nothing behind.
"""

from __future__ import annotations

import csv
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from io import StringIO
from typing import ClassVar

from sqlalchemy.orm import Session

from db.models.finance import Account
from db.models.imports import Import, ImportMapping
from ..errors import ImportPipelineError, MissingMappingError
from ..logging_setup import get_logger
from ..mappings import MappingSet, mapping_steps, sync_mappings
from ..models import ImportResult, ImportSettings, ValidationResult
from ..rows import Row, parse_rows, validate_rows
from ..securities import DatabaseSecurityResolver, SecurityCache, SecurityResolver

_logger = get_logger("finance_import.importers")


@dataclass(slots=True)
class Batch:
    """Records built in memory for one run, keyed like ``dry_run``.

    Key order is the flush order.
    """

    records: dict[str, list[object]] = field(default_factory=dict)
    skipped_rows: list[int] = field(default_factory=list)

    def add(self, key: str, record: object) -> None:
        self.records.setdefault(key, []).append(record)


def settings_for(imp: Import) -> ImportSettings:
    return ImportSettings(
        date_format=imp.date_format,
        number_format=imp.number_format,
        signage_convention=imp.signage_convention,
        amount_type_strategy=imp.amount_type_strategy,
        amount_type_inflow_value=imp.amount_type_inflow_value,
        col_sep=imp.col_sep,
    )


class Importer(ABC):
    """Common interface of the three import kinds."""

    kind: ClassVar[str]
    required_column_keys: ClassVar[tuple[str, ...]]
    base_column_keys: ClassVar[tuple[str, ...]]
    template_header: ClassVar[tuple[str, ...]]
    template_rows: ClassVar[tuple[tuple[str, ...], ...]]
    uses_securities: ClassVar[bool] = False

    def __init__(self, imp: Import, *, resolver: SecurityResolver | None = None) -> None:
        self.imp = imp
        self.resolver = resolver
        self._rows: list[Row] | None = None

    # ---- schema -------------------------------------------------------------

    @property
    def has_account(self) -> bool:
        return self.imp.account_id is not None

    @property
    def settings(self) -> ImportSettings:
        return settings_for(self.imp)

    @property
    def column_keys(self) -> tuple[str, ...]:
        if self.has_account:
            return self.base_column_keys
        return ("account", *self.base_column_keys)

    @property
    def mapping_steps(self) -> tuple[str, ...]:
        return mapping_steps(self.kind, has_account=self.has_account)

    @classmethod
    def render_template(cls, *, include_account: bool = True) -> str:
        """Example CSV for users; required headers carry a trailing ``*``."""

        keep = [
            i
            for i, h in enumerate(cls.template_header)
            if include_account or h.rstrip("*") != "account"
        ]
        buf = StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow([cls.template_header[i] for i in keep])
        for line in cls.template_rows:
            writer.writerow([line[i] for i in keep])
        return buf.getvalue()

    def csv_template(self) -> str:
        return self.render_template(include_account=not self.has_account)

    # ---- parsing and validation ---------------------------------------------

    @property
    def rows(self) -> list[Row]:
        if self._rows is None:
            self._rows = parse_rows(
                self.imp.raw_file_str,
                settings=self.settings,
                column_map=self.imp.column_map or {},
                kind=self.kind,
                required_keys=self.required_column_keys,
            )
        return self._rows

    def validate(self) -> ValidationResult:
        result = validate_rows(self.rows, required_keys=self.required_column_keys)
        if not self.has_account:
            for row in self.rows:
                if not row.account:
                    result.add(row.index, "account", "is required when the import has no account")
        result.issues.sort(key=lambda issue: issue.row_index)
        return result

    def sync_mappings(self, session: Session) -> list[ImportMapping]:
        return sync_mappings(session, self.imp, self.rows, steps=self.mapping_steps)

    def invalid_mappings(self, session: Session) -> list[str]:
        mappings = MappingSet.load(session, self.imp)
        invalid = [f"{m.mapping_type}:{m.key}" for m in mappings.invalid()]
        if not self.has_account:
            mapped = {m.key for m in mappings.of_type("account")}
            invalid.extend(
                f"account:{label}"
                for label in dict.fromkeys(r.account for r in self.rows if r.account)
                if label not in mapped
            )
        return invalid

    def publishable(self, session: Session) -> bool:
        return self.validate().ok and not self.invalid_mappings(session)

    # ---- preview -------------------------------------------------------------

    def dry_run(self, session: Session) -> dict[str, int]:
        """Counts of records ``import_`` would create. Never writes."""

        counts = self._dry_run_counts()
        if not self.has_account:
            counts["accounts"] = len(
                MappingSet.load(session, self.imp).pending_creations("account")
            )
        return counts

    @abstractmethod
    def _dry_run_counts(self) -> dict[str, int]: ...

    # ---- import --------------------------------------------------------------

    def import_(self, session: Session) -> ImportResult:
        """Build every record for this import and flush them into ``session``.

        Mappings are materialized first. Records are then built row by row in
        memory and added per record type once the whole file has been
        processed.
        """

        rows = self.rows
        mappings = MappingSet.load(session, self.imp)
        account_currency = self.imp.account.currency if self.imp.account is not None else "USD"
        accounts_created = len(mappings.pending_creations("account"))
        mappings.create_all(currency=account_currency)

        cache = None
        if self.uses_securities:
            cache = SecurityCache(self.resolver or DatabaseSecurityResolver(session))

        batch = self._build(session, rows, mappings, cache)

        created: dict[str, int] = {}
        for key, records in batch.records.items():
            session.add_all(records)
            session.flush()
            created[key] = len(records)
        if not self.has_account:
            created["accounts"] = accounts_created

        _logger.info(
            "import_done import_id=%s kind=%s rows=%d created=%s skipped=%d",
            self.imp.id,
            self.kind,
            len(rows),
            created,
            len(batch.skipped_rows),
        )
        return ImportResult(created=created, skipped_rows=batch.skipped_rows)

    @abstractmethod
    def _build(
        self,
        session: Session,
        rows: Sequence[Row],
        mappings: MappingSet,
        cache: SecurityCache | None,
    ) -> Batch: ...

    # ---- helpers for subclasses ----------------------------------------------

    def account_for(self, row: Row, mappings: MappingSet) -> Account:
        if self.imp.account is not None:
            return self.imp.account
        account = mappings.mappable_for("account", row.account)
        if account is None:
            raise MissingMappingError("account", row.account, row_index=row.index)
        return account  # type: ignore[return-value]

    def require_cache(self, cache: SecurityCache | None) -> SecurityCache:
        if cache is None:
            raise ImportPipelineError(f"{self.kind} imports need a security cache")
        return cache

    @staticmethod
    def currency_for(row: Row, account: Account) -> str:
        return row.currency or account.currency


__all__ = ["Batch", "Importer", "settings_for"]
