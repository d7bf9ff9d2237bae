# ruff: noqa: I001
"""Trade imports: one Entry + Trade per CSV row with a resolvable security."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from db.models.finance import Entry, Trade
from ..logging_setup import get_logger
from ..mappings import MappingSet
from ..rows import Row
from ..securities import SecurityCache
from .base import Batch, Importer

_logger = get_logger("finance_import.importers.trades")


class TradeImporter(Importer):
    kind = "trade"
    uses_securities = True
    required_column_keys = ("date", "ticker", "qty", "price")
    base_column_keys = ("date", "ticker", "exchange_operating_mic", "currency", "qty", "price", "name")
    template_header = (
        "date*",
        "ticker*",
        "exchange_operating_mic",
        "currency",
        "qty*",
        "price*",
        "account",
        "name",
    )
    template_rows = (
        ("01/15/2024", "AAPL", "XNAS", "USD", "10", "150.00", "Brokerage Account", "Apple Inc. Purchase"),
        ("01/16/2024", "GOOGL", "XNAS", "USD", "-5", "2500.00", "401k Account", "Alphabet Inc. Sale"),
        ("01/17/2024", "TSLA", "XNAS", "USD", "2", "700.50", "IRA Account", "Tesla Inc. Purchase"),
        ("01/18/2024", "SPY", "XNAS", "USD", "100", "450.00", "Taxable Account", "S&P 500 ETF Buy"),
        (
            "01/19/2024",
            "VTI",
            "XNAS",
            "USD",
            "-25",
            "220.00",
            "Retirement Account",
            "Vanguard Total Market Sale",
        ),
    )

    def _dry_run_counts(self) -> dict[str, int]:
        return {"trades": len(self.rows)}

    def _build(
        self,
        session: Session,
        rows: Sequence[Row],
        mappings: MappingSet,
        cache: SecurityCache | None,
    ) -> Batch:
        cache = self.require_cache(cache)
        batch = Batch(records={"trades": []})
        for row in rows:
            account = self.account_for(row, mappings)
            security = cache.get(row.ticker, row.exchange_operating_mic)
            if security is None:
                _logger.warning(
                    "trade_row_skipped import_id=%s row=%d ticker=%s",
                    self.imp.id,
                    row.index,
                    row.ticker,
                )
                batch.skipped_rows.append(row.index)
                continue

            currency = self.currency_for(row, account)
            entry = Entry(
                account=account,
                date=row.date,
                amount=row.signed_amount,
                currency=currency,
                name=row.name,
                entryable_type="Trade",
                import_id=self.imp.id,
            )
            batch.add(
                "trades",
                Trade(entry=entry, security=security, qty=row.qty, price=row.price, currency=currency),
            )
        return batch


__all__ = ["TradeImporter"]
