from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from db.models.finance import Account, Category, Entry, Tag, Transaction
from finance_import import api
from finance_import.review import confirm_mappings
from finance_import.term_ui import CreateMappableRequest

from tests.helpers.db import count, entries_for, seed_accounts, seed_categories

COLUMN_MAP = {
    "date": "Posted On",
    "name": "Description",
    "amount": "Amount",
    "account": "Account Name",
    "category": "Category",
    "tags": "Labels",
    "notes": "Memo",
}


def _accept_existing_or_create(options: list[str], default: str):
    """Keep a linked or same-named entity; otherwise create it on import."""

    if default in options:
        return default
    return CreateMappableRequest("")


def test_e2e_bank_export_imports_and_reverts(session):
    # -------------------------
    # Input (fixture file path)
    # -------------------------
    csv_path = Path(__file__).resolve().parents[1] / "data/checking_export_jan_2024.csv"
    csv_text = csv_path.read_text(encoding="utf-8")

    # -------------------------
    # Existing ledger state
    # -------------------------
    seed_accounts(session, ["Everyday Checking"])
    seed_categories(session, ["Groceries", "Income"])

    # -------------------------
    # Create + map
    # -------------------------
    imp = api.create_import(
        session,
        kind="transaction",
        csv_text=csv_text,
        column_map=COLUMN_MAP,
        col_sep=";",
        number_format="1.234,56",
        date_format="%d.%m.%Y",
    )
    assert api.check(imp).ok
    api.sync_mappings(session, imp)
    confirm_mappings(session, imp, selector=_accept_existing_or_create, print_fn=lambda *_: None)
    session.commit()

    preview = api.dry_run(session, imp)
    assert preview == {"transactions": 6, "accounts": 1}

    # -------------------------
    # Publish
    # -------------------------
    result = api.publish(session, imp)
    assert result.created == preview
    assert imp.status == "complete"

    entries = entries_for(session, imp)
    assert [e.amount for e in entries] == [
        Decimal("-3250.00"),
        Decimal("84.17"),
        Decimal("4.50"),
        Decimal("120.00"),
        Decimal("500.00"),
        Decimal("89.00"),
    ]
    assert entries[0].name == "PAYROLL ACME CORP"
    assert entries[3].notes == "autopay"
    assert entries[4].notes == "monthly sweep"

    bills = session.query(Account).filter_by(name="Household Bills").one()
    assert bills.accountable_type == "Depository"
    assert {e.account.name for e in entries} == {"Everyday Checking", "Household Bills"}

    assert {c.name for c in session.query(Category)} == {
        "Groceries",
        "Income",
        "Coffee Shops",
        "Utilities",
        "Home Services",
    }
    assert {t.name for t in session.query(Tag)} == {"salary", "food", "weekly", "home", "quarterly"}
    sweep = session.query(Transaction).filter_by(entry_id=entries[4].id).one()
    assert sweep.category is None
    assert sweep.tags == []

    # -------------------------
    # Revert
    # -------------------------
    counts = api.revert(session, imp)
    assert counts["entries"] == 6
    assert counts["transactions"] == 6
    assert count(session, Entry) == 0
    # Entities created by the import outlive it.
    assert count(session, Account) == 2
    assert count(session, Tag) == 5
