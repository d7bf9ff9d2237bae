from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from db.models.finance import Entry
from db.models.imports import Import
from finance_import.cli import app, cmd_check, cmd_dry_run, cmd_import, cmd_revert

from tests.helpers.db import count, seed_accounts

CSV = "date,amount,account,name\n01/01/2024,10,Checking,Coffee\n01/02/2024,-20,Savings,Refund\n"

runner = CliRunner()


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # The root callback reads .env from the working directory.
    monkeypatch.chdir(tmp_path)


def _write(tmp_path: Path, text: str, name: str = "in.csv") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_template_command_prints_header():
    result = runner.invoke(app, ["template", "trade"])
    assert result.exit_code == 0
    assert result.stdout.splitlines()[0].startswith("date*,ticker*")


def test_template_without_account_column():
    result = runner.invoke(app, ["template", "portfolio_allocation", "--no-account"])
    assert result.exit_code == 0
    assert "account" not in result.stdout.splitlines()[0]


def test_template_unknown_kind_fails():
    result = runner.invoke(app, ["template", "budget"])
    assert result.exit_code == 1


def test_check_command_reports_ok(tmp_path: Path):
    path = _write(tmp_path, CSV)
    result = runner.invoke(app, ["check", "--csv-path", str(path), "--kind", "transaction"])
    assert result.exit_code == 0
    assert "OK: 2 rows" in result.stdout


def test_check_command_lists_issues_with_one_based_rows(tmp_path: Path):
    path = _write(tmp_path, "date,amount,account\n01/01/2024,ten,Checking\n")
    result = runner.invoke(app, ["check", "--csv-path", str(path), "--kind", "transaction"])
    assert result.exit_code == 1
    assert "row 1\tamount\tmust be a number" in result.stdout


def test_check_single_account_does_not_need_account_column(tmp_path: Path):
    path = _write(tmp_path, "date;amount\n2024-01-31;1.234,50\n")
    result = runner.invoke(
        app,
        [
            "check",
            "--csv-path",
            str(path),
            "--kind",
            "transaction",
            "--single-account",
            "--col-sep",
            ";",
            "--number-format",
            "1.234,56",
            "--date-format",
            "%Y-%m-%d",
        ],
    )
    assert result.exit_code == 0, result.output
    assert "OK: 1 rows" in result.stdout


def test_cmd_check_missing_file(capsys, tmp_path: Path):
    assert cmd_check(str(tmp_path / "nope.csv"), kind="transaction") == 1
    assert "File not found" in capsys.readouterr().err


def test_cmd_check_rejects_bad_settings(capsys, tmp_path: Path):
    path = _write(tmp_path, CSV)
    assert cmd_check(str(path), kind="transaction", date_format="%Q") == 1
    assert capsys.readouterr().err.startswith("Error:")


def test_cmd_dry_run_writes_nothing(capsys, tmp_path: Path, db_url, session):
    seed_accounts(session, ["Checking"])
    session.commit()
    path = _write(tmp_path, CSV)

    assert cmd_dry_run(str(path), kind="transaction", database_url=db_url) == 0

    out = capsys.readouterr().out
    assert out.splitlines() == ["transactions\t2", "accounts\t1"]
    assert count(session, Import) == 0


def test_cmd_dry_run_unknown_account(capsys, tmp_path: Path, db_url):
    path = _write(tmp_path, "date,amount\n01/01/2024,1\n")
    rc = cmd_dry_run(str(path), kind="transaction", account="Nope", database_url=db_url)
    assert rc == 1
    assert "account not found" in capsys.readouterr().err


def test_import_then_revert_via_cli(tmp_path: Path, db_url, session):
    seed_accounts(session, ["Checking", "Savings"])
    session.commit()
    path = _write(tmp_path, CSV)

    result = runner.invoke(
        app,
        ["import", "--csv-path", str(path), "--kind", "transaction", "--database-url", db_url],
    )
    assert result.exit_code == 0, result.output
    lines = result.stdout.splitlines()
    import_id = int(lines[0].split("\t")[1])
    assert lines[1:] == ["transactions\t2", "accounts\t0"]
    assert count(session, Entry) == 2

    result = runner.invoke(app, ["revert", str(import_id), "--database-url", db_url])
    assert result.exit_code == 0, result.output
    assert "entries\t2" in result.stdout
    assert count(session, Entry) == 0


def test_cmd_import_reports_row_issues(capsys, tmp_path: Path, db_url):
    path = _write(tmp_path, "date,amount,account\n01/01/2024,,Checking\n")

    assert cmd_import(str(path), kind="transaction", database_url=db_url) == 1

    captured = capsys.readouterr()
    assert "not publishable" in captured.err
    assert "row 1\tamount\tis required" in captured.out


def test_cmd_import_with_injected_selector(capsys, tmp_path: Path, db_url, session):
    seed_accounts(session, ["Everyday"])
    session.commit()
    path = _write(tmp_path, "date,amount,account\n01/01/2024,5,Chk\n")

    rc = cmd_import(
        str(path),
        kind="transaction",
        database_url=db_url,
        selector=lambda options, default: "Everyday",
    )

    assert rc == 0
    out = capsys.readouterr().out
    assert "accounts\t0" in out
    assert count(session, Entry) == 1


def test_cmd_revert_unknown_import(capsys, db_url):
    assert cmd_revert(999, database_url=db_url) == 1
    assert "import not found" in capsys.readouterr().err


def test_check_applies_custom_amount_type_column(tmp_path: Path):
    path = _write(tmp_path, "date,amount,entity_type\n01/01/2024,25,CR\n01/02/2024,30,\n")
    args = ["check", "--csv-path", str(path), "--kind", "transaction", "--single-account"]

    assert runner.invoke(app, args).exit_code == 0

    result = runner.invoke(
        app,
        [*args, "--amount-type-strategy", "custom_column", "--amount-type-inflow-value", "CR"],
    )
    assert result.exit_code == 1
    assert "row 2\tentity_type\tis required" in result.stdout


def test_import_with_custom_amount_type_column(tmp_path: Path, db_url, session):
    seed_accounts(session, ["Joint"])
    session.commit()
    path = _write(tmp_path, "date,amount,entity_type\n01/01/2024,25,CR\n01/02/2024,30,DR\n")

    result = runner.invoke(
        app,
        [
            "import",
            "--csv-path",
            str(path),
            "--account",
            "Joint",
            "--database-url",
            db_url,
            "--amount-type-strategy",
            "custom_column",
            "--amount-type-inflow-value",
            "CR",
        ],
    )

    assert result.exit_code == 0, result.output
    amounts = [e.amount for e in session.query(Entry).order_by(Entry.id)]
    assert amounts == [Decimal("-25"), Decimal("30")]
