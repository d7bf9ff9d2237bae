from __future__ import annotations

from db.models.finance import Account, Category, Tag
from db.models.imports import ImportMapping
from finance_import import api
from finance_import.mappings import MappingSet, create_mappable, mapping_steps

from tests.helpers.db import seed_accounts, seed_categories

CSV = (
    "date,amount,account,category,tags\n"
    "01/01/2024,10,Checking,Groceries,food|weekly\n"
    "01/02/2024,20,Savings,Dining,food\n"
    "01/03/2024,30,Checking,,\n"
)


def test_mapping_steps_depend_on_kind_and_account():
    assert mapping_steps("transaction", has_account=False) == ("account", "category", "tag")
    assert mapping_steps("transaction", has_account=True) == ("category", "tag")
    assert mapping_steps("trade", has_account=False) == ("account",)
    assert mapping_steps("portfolio_allocation", has_account=True) == ()


def test_sync_mappings_links_existing_entities_by_name(session):
    accounts = seed_accounts(session, ["Checking"])
    cats = seed_categories(session, ["Groceries"])
    imp = api.create_import(session, kind="transaction", csv_text=CSV)

    mappings = api.sync_mappings(session, imp)

    by_key = {(m.mapping_type, m.key): m for m in mappings}
    assert set(by_key) == {
        ("account", "Checking"),
        ("account", "Savings"),
        ("category", "Groceries"),
        ("category", "Dining"),
        ("tag", "food"),
        ("tag", "weekly"),
    }
    assert by_key[("account", "Checking")].mappable_id == accounts["Checking"].id
    assert by_key[("account", "Checking")].create_when_empty is False
    assert by_key[("account", "Savings")].mappable_id is None
    assert by_key[("account", "Savings")].create_when_empty is True
    assert by_key[("account", "Savings")].value == "Depository"
    assert by_key[("category", "Groceries")].mappable_id == cats["Groceries"].id


def test_sync_mappings_is_idempotent_and_keeps_user_choices(session):
    seed_accounts(session, ["Joint"])
    imp = api.create_import(session, kind="transaction", csv_text=CSV)
    api.sync_mappings(session, imp)

    savings = MappingSet.load(session, imp).get("account", "Savings")
    joint = session.query(Account).filter_by(name="Joint").one()
    api.update_mapping(session, savings, mappable=joint)

    again = api.sync_mappings(session, imp)
    assert len(again) == 6
    assert MappingSet.load(session, imp).get("account", "Savings").mappable_id == joint.id
    assert session.query(ImportMapping).filter_by(import_id=imp.id).count() == 6


def test_mappable_for_and_creational(session):
    seed_accounts(session, ["Checking"])
    imp = api.create_import(session, kind="transaction", csv_text=CSV)
    api.sync_mappings(session, imp)
    mappings = MappingSet.load(session, imp)

    assert mappings.mappable_for("account", "Checking").name == "Checking"
    assert mappings.mappable_for("account", "Savings") is None
    assert mappings.mappable_for("account", "Nowhere") is None
    assert [m.key for m in mappings.creational("account")] == ["Savings"]
    assert {m.key for m in mappings.creational("tag")} == {"food", "weekly"}


def test_create_mappable_creates_once_and_links(session):
    imp = api.create_import(session, kind="trade", csv_text="date,ticker,qty,price,account\n"
                            "01/01/2024,AAPL,1,100,Brokerage\n")
    api.sync_mappings(session, imp)
    mapping = MappingSet.load(session, imp).get("account", "Brokerage")

    created = create_mappable(session, mapping, currency="EUR")
    assert isinstance(created, Account)
    assert created.accountable_type == "Investment"
    assert created.currency == "EUR"
    assert mapping.mappable_id == created.id
    # Linked now, so a second call returns the same row.
    assert create_mappable(session, mapping) is created


def test_create_mappable_respects_create_when_empty_false(session):
    imp = api.create_import(session, kind="transaction", csv_text=CSV)
    api.sync_mappings(session, imp)
    mapping = MappingSet.load(session, imp).get("category", "Dining")
    api.update_mapping(session, mapping, create_when_empty=False)

    assert create_mappable(session, mapping) is None
    assert session.query(Category).filter_by(name="Dining").count() == 0


def test_invalid_account_mapping_is_reported(session):
    imp = api.create_import(session, kind="transaction", csv_text=CSV)
    api.sync_mappings(session, imp)
    mapping = MappingSet.load(session, imp).get("account", "Savings")
    api.update_mapping(session, mapping, create_when_empty=False)

    mappings = MappingSet.load(session, imp)
    assert [m.key for m in mappings.invalid()] == ["Savings"]
    # Category/tag mappings without a target are simply left empty.
    tag = mappings.get("tag", "weekly")
    api.update_mapping(session, tag, create_when_empty=False)
    assert [m.key for m in MappingSet.load(session, imp).invalid()] == ["Savings"]
    assert session.query(Tag).count() == 0
