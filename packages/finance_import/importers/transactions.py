# ruff: noqa: I001
"""Cash transaction imports: one Entry + Transaction per CSV row."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from db.models.finance import Category, Entry, Tag, Transaction
from ..mappings import MappingSet
from ..rows import Row
from ..securities import SecurityCache
from .base import Batch, Importer


class TransactionImporter(Importer):
    kind = "transaction"
    required_column_keys = ("date", "amount")
    base_column_keys = ("date", "amount", "name", "currency", "category", "tags", "notes")
    template_header = (
        "date*",
        "amount*",
        "name",
        "currency",
        "category",
        "tags",
        "account",
        "notes",
    )
    template_rows = (
        (
            "01/15/2024",
            "-1000.00",
            "401k Contribution",
            "USD",
            "Investment",
            "retirement|401k",
            "401k Account",
            "Monthly 401k contribution",
        ),
        (
            "01/16/2024",
            "2500.00",
            "Dividend Payment",
            "USD",
            "Investment",
            "dividend|income",
            "Brokerage Account",
            "Quarterly dividend from AAPL",
        ),
        (
            "01/17/2024",
            "-500.00",
            "IRA Contribution",
            "USD",
            "Investment",
            "retirement|ira",
            "IRA Account",
            "Monthly IRA contribution",
        ),
        (
            "01/18/2024",
            "-200.00",
            "Investment Purchase",
            "USD",
            "Investment",
            "purchase",
            "Brokerage Account",
            "Additional shares purchase",
        ),
        (
            "01/19/2024",
            "150.00",
            "Interest Payment",
            "USD",
            "Investment",
            "interest|income",
            "Savings Account",
            "Monthly interest payment",
        ),
    )

    def selectable_amount_type_values(self) -> list[str]:
        """Distinct values of the amount-type column, in first-seen order.

        Offered to the user when choosing which value marks an inflow.
        """

        if not self.rows or "entity_type" not in self.rows[0].values:
            return []
        return list(dict.fromkeys(row.entity_type for row in self.rows))

    def _dry_run_counts(self) -> dict[str, int]:
        return {"transactions": len(self.rows)}

    def _build(
        self,
        session: Session,
        rows: Sequence[Row],
        mappings: MappingSet,
        cache: SecurityCache | None,
    ) -> Batch:
        batch = Batch(records={"transactions": []})
        for row in rows:
            account = self.account_for(row, mappings)
            category = mappings.mappable_for("category", row.category) if row.category else None
            # One link per tag, even when labels repeat or map to the same tag.
            tags: dict[int, Tag] = {}
            for label in row.tags_list:
                tag = mappings.mappable_for("tag", label)
                if isinstance(tag, Tag):
                    tags.setdefault(tag.id, tag)

            entry = Entry(
                account=account,
                date=row.date,
                amount=row.signed_amount,
                currency=self.currency_for(row, account),
                name=row.name,
                notes=row.notes or None,
                entryable_type="Transaction",
                import_id=self.imp.id,
            )
            batch.add(
                "transactions",
                Transaction(
                    entry=entry,
                    category=category if isinstance(category, Category) else None,
                    tags=list(tags.values()),
                ),
            )
        return batch


__all__ = ["TransactionImporter"]
