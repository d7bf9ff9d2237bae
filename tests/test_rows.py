import csv
import textwrap
from datetime import date
from decimal import Decimal

import pytest

from finance_import.errors import MaxRowCountExceededError
from finance_import.models import ImportSettings
from finance_import.rows import parse_decimal, parse_rows, read_headers, validate_rows


def _csv(text: str) -> str:
    return textwrap.dedent(text).lstrip()


def test_parse_rows_strips_bom_and_template_markers():
    text = "\ufeffdate*,amount*,Name\n01/15/2024,12.50,Coffee\n"
    rows = parse_rows(text, required_keys=("date", "amount"))
    assert len(rows) == 1
    assert rows[0].date_iso == "2024-01-15"
    assert rows[0].amount == Decimal("12.50")
    assert rows[0].name == "Coffee"


def test_parse_rows_uses_column_map_and_ignores_column_order():
    text = _csv(
        """
        Memo,Posted On,Value
        Rent,2024-02-01,1500
        """
    )
    rows = parse_rows(
        text,
        settings=ImportSettings(date_format="%Y-%m-%d"),
        column_map={"date": "Posted On", "amount": "Value", "name": "Memo"},
        required_keys=("date", "amount"),
    )
    assert rows[0].date == date(2024, 2, 1)
    assert rows[0].amount == Decimal("1500")
    assert rows[0].name == "Rent"


def test_parse_rows_missing_required_column_raises():
    with pytest.raises(csv.Error, match="amount"):
        parse_rows("date,name\n01/01/2024,x\n", required_keys=("date", "amount"))


def test_parse_rows_mapped_label_must_exist():
    with pytest.raises(csv.Error, match="Posted On"):
        parse_rows("date,amount\n01/01/2024,1\n", column_map={"date": "Posted On"})


def test_blank_lines_are_skipped_and_do_not_consume_indices():
    text = "date,amount\n01/01/2024,1\n\n , \n01/02/2024,2\n"
    rows = parse_rows(text)
    assert [r.index for r in rows] == [0, 1]
    assert [r.amount for r in rows] == [Decimal("1"), Decimal("2")]


def test_semicolon_separator_with_european_numbers():
    text = "date;amount\n15.01.2024;1.234,56\n"
    settings = ImportSettings(col_sep=";", number_format="1.234,56", date_format="%d.%m.%Y")
    rows = parse_rows(text, settings=settings)
    assert rows[0].amount == Decimal("1234.56")
    assert rows[0].date_iso == "2024-01-15"


def test_max_row_count_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("FINANCE_IMPORT_MAX_ROWS", "2")
    text = "date,amount\n" + "01/01/2024,1\n" * 3
    with pytest.raises(MaxRowCountExceededError) as ei:
        parse_rows(text)
    assert ei.value.limit == 2


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.50", Decimal("1234.50")),
        ("(42.00)", Decimal("-42.00")),
        ("-$5", Decimal("-5")),
        ("+7.25", Decimal("7.25")),
    ],
)
def test_parse_decimal_accepts_symbols_and_parentheses(raw, expected):
    assert parse_decimal(raw) == expected


def test_parse_decimal_rejects_garbage():
    with pytest.raises(ValueError):
        parse_decimal("twelve")


def test_signed_amount_flips_inflows_positive_by_default():
    rows = parse_rows("date,amount\n01/01/2024,100\n01/02/2024,-40\n")
    assert [r.signed_amount for r in rows] == [Decimal("-100"), Decimal("40")]


def test_signed_amount_keeps_sign_for_inflows_negative():
    settings = ImportSettings(signage_convention="inflows_negative")
    rows = parse_rows("date,amount\n01/01/2024,100\n", settings=settings)
    assert rows[0].signed_amount == Decimal("100")


def test_signed_amount_from_custom_column():
    settings = ImportSettings(amount_type_strategy="custom_column", amount_type_inflow_value="CR")
    text = "date,amount,entity_type\n01/01/2024,25,CR\n01/02/2024,-30,DR\n"
    rows = parse_rows(text, settings=settings)
    assert [r.signed_amount for r in rows] == [Decimal("-25"), Decimal("30")]


def test_trade_signed_amount_is_qty_times_price_and_name_defaults():
    text = "date,ticker,qty,price\n01/15/2024,aapl,10,150.00\n01/16/2024,MSFT,-2,300\n"
    rows = parse_rows(text, kind="trade")
    assert rows[0].ticker == "AAPL"
    assert rows[0].signed_amount == Decimal("1500.00")
    assert rows[0].name == "Buy 10 shares of AAPL"
    assert rows[1].name == "Sell 2 shares of MSFT"


def test_tags_list_splits_on_pipe_and_drops_blanks():
    rows = parse_rows("date,amount,tags\n01/01/2024,1, retirement | |401k\n")
    assert rows[0].tags_list == ["retirement", "401k"]


def test_validate_rows_collects_issues_without_stopping():
    text = _csv(
        """
        date,amount,currency
        13/45/2024,10,USD
        01/02/2024,abc,US
        01/03/2024,,EUR
        01/04/2024,5,usd
        """
    )
    rows = parse_rows(text)
    result = validate_rows(rows, required_keys=("date", "amount"))
    assert not result.ok
    assert [(i.row_index, i.field) for i in result.issues] == [
        (0, "date"),
        (1, "amount"),
        (1, "currency"),
        (2, "amount"),
    ]
    assert result.for_row(3) == []


def test_validate_rows_trade_ticker_format():
    rows = parse_rows("date,ticker,qty,price\n01/01/2024,BRK.B,1,1\n", kind="trade")
    result = validate_rows(rows, required_keys=("date", "ticker", "qty", "price"))
    assert result.issues[0].field == "ticker"
    assert result.issues[0].message == "Invalid ticker format. Use 1-5 uppercase letters."


def test_validate_rows_portfolio_ticker_requires_qty_and_price():
    text = "date,portfolio_value,ticker,qty,price\n01/01/2024,1000,AAPL,,\n01/01/2024,1000,,,\n"
    rows = parse_rows(text, kind="portfolio_allocation")
    result = validate_rows(rows, required_keys=("date", "portfolio_value"))
    assert [(i.row_index, i.field) for i in result.issues] == [(0, "qty"), (0, "price")]


def test_read_headers_cleans_markers():
    assert read_headers("date*, amount* ,name\n") == ["date", "amount", "name"]
