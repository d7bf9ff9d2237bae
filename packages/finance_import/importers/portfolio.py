# ruff: noqa: I001
"""Portfolio allocation imports.

Every row yields a valuation entry for the stated portfolio value. Rows that
also name a ticker yield a holding for that security; when the security
cannot be resolved only the holding is dropped.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from db.models.finance import Entry, Holding, Valuation
from ..mappings import MappingSet
from ..rows import Row
from ..securities import SecurityCache
from .base import Batch, Importer


class PortfolioAllocationImporter(Importer):
    kind = "portfolio_allocation"
    uses_securities = True
    required_column_keys = ("date", "portfolio_value")
    base_column_keys = (
        "date",
        "portfolio_value",
        "currency",
        "ticker",
        "exchange_operating_mic",
        "qty",
        "price",
    )
    template_header = (
        "date*",
        "portfolio_value*",
        "currency",
        "ticker",
        "exchange_operating_mic",
        "qty",
        "price",
        "account",
    )
    template_rows = (
        ("01/15/2024", "50000.00", "USD", "AAPL", "XNAS", "100", "150.00", "Brokerage Account"),
        ("01/15/2024", "50000.00", "USD", "GOOGL", "XNAS", "20", "2500.00", "401k Account"),
        ("01/15/2024", "50000.00", "USD", "SPY", "XNAS", "200", "450.00", "Taxable Account"),
        ("01/15/2024", "50000.00", "USD", "VTI", "XNAS", "500", "220.00", "IRA Account"),
        ("01/15/2024", "50000.00", "USD", "TSLA", "XNAS", "50", "700.00", "Retirement Account"),
    )

    def _dry_run_counts(self) -> dict[str, int]:
        return {
            "valuations": len(self.rows),
            "holdings": sum(1 for row in self.rows if row.ticker),
        }

    def _build(
        self,
        session: Session,
        rows: Sequence[Row],
        mappings: MappingSet,
        cache: SecurityCache | None,
    ) -> Batch:
        cache = self.require_cache(cache)
        batch = Batch(records={"valuations": [], "holdings": []})
        for row in rows:
            account = self.account_for(row, mappings)
            currency = self.currency_for(row, account)
            entry = Entry(
                account=account,
                date=row.date,
                amount=row.signed_amount,
                currency=currency,
                name="Portfolio Valuation",
                notes="Imported portfolio allocation",
                entryable_type="Valuation",
                import_id=self.imp.id,
            )
            batch.add("valuations", Valuation(entry=entry))

            if not row.ticker:
                continue
            security = cache.get(row.ticker, row.exchange_operating_mic)
            if security is None:
                batch.skipped_rows.append(row.index)
                continue
            qty, price = row.qty, row.price
            batch.add(
                "holdings",
                Holding(
                    account=account,
                    security=security,
                    date=row.date,
                    qty=qty,
                    price=price,
                    amount=qty * price,
                    currency=currency,
                    import_id=self.imp.id,
                ),
            )
        return batch


__all__ = ["PortfolioAllocationImporter"]
