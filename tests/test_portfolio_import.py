from __future__ import annotations

from decimal import Decimal

from db.models.finance import Entry, Holding, Valuation
from finance_import import api

from tests.helpers.db import count, entries_for, seed_accounts
from tests.helpers.resolver_stub import ResolverStub

CSV = (
    "date,portfolio_value,currency,ticker,exchange_operating_mic,qty,price\n"
    "01/15/2024,50000.00,USD,AAPL,XNAS,100,150.00\n"
    "01/15/2024,50000.00,USD,GOOGL,XNAS,20,2500.00\n"
    "01/15/2024,50000.00,USD,,,,\n"
)


def _prepare(session, csv_text=CSV):
    acct = seed_accounts(session, ["Brokerage"], accountable_type="Investment")["Brokerage"]
    imp = api.create_import(
        session, kind="portfolio_allocation", csv_text=csv_text, account=acct
    )
    api.sync_mappings(session, imp)
    session.commit()
    return imp


def test_dry_run_counts_valuations_and_holdings(session):
    imp = _prepare(session)
    assert api.dry_run(session, imp) == {"valuations": 3, "holdings": 2}


def test_publish_creates_valuations_and_holdings(session):
    imp = _prepare(session)
    result = api.publish(session, imp, resolver=ResolverStub(session))

    assert result.created == {"valuations": 3, "holdings": 2}
    entries = entries_for(session, imp)
    assert {e.entryable_type for e in entries} == {"Valuation"}
    assert {e.name for e in entries} == {"Portfolio Valuation"}
    assert {e.notes for e in entries} == {"Imported portfolio allocation"}
    assert all(e.amount == Decimal("50000.00") for e in entries)
    assert count(session, Valuation) == 3

    holdings = session.query(Holding).order_by(Holding.id).all()
    assert [h.security.ticker for h in holdings] == ["AAPL", "GOOGL"]
    assert [h.amount for h in holdings] == [Decimal("15000.00"), Decimal("50000.00")]
    assert {h.import_id for h in holdings} == {imp.id}


def test_unresolvable_security_keeps_the_valuation(session):
    imp = _prepare(session)
    result = api.publish(session, imp, resolver=ResolverStub(session, failing=["GOOGL"]))

    assert result.created == {"valuations": 3, "holdings": 1}
    assert result.skipped_rows == [1]
    assert count(session, Entry) == 3
    assert count(session, Holding) == 1


def test_ticker_without_qty_is_a_row_issue(session):
    imp = _prepare(session, csv_text="date,portfolio_value,ticker,qty,price\n01/15/2024,100,VTI,,\n")
    issues = api.check(imp).issues
    assert [(i.row_index, i.field) for i in issues] == [(0, "qty"), (0, "price")]
