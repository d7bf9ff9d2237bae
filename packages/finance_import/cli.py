# ruff: noqa: I001
"""CLI for the ``finance_import`` package.

This module exposes callable command handlers (``cmd_check``,
``cmd_dry_run``, ``cmd_import``, ...) and a Typer-based console interface.
Environment variables (notably ``DATABASE_URL``) are loaded from a local
``.env`` using ``python-dotenv`` before any command runs. Business logic lives
in ``finance_import.api`` and related modules; handlers only translate
between the terminal and that layer.

Errors are written to stderr as ``Error: ...`` and the handler returns a
non-zero status.
"""

from __future__ import annotations

import csv
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from typer.models import OptionInfo

from .errors import ImportPipelineError
from .logging_setup import configure_logging
from .models import IMPORT_KINDS


def _read_csv(csv_path: str) -> str | None:
    """Return the file contents, or ``None`` after reporting why not."""

    try:
        with open(csv_path, encoding="utf-8-sig", newline="") as f:
            return f.read()
    except FileNotFoundError:
        print(f"Error: File not found: {csv_path}", file=sys.stderr)
    except PermissionError:
        print(f"Error: Permission denied: {csv_path}", file=sys.stderr)
    except UnicodeDecodeError as e:
        print(f"Error: '{csv_path}' is not UTF-8 text: {e}", file=sys.stderr)
    return None


def _settings_kwargs(
    *,
    date_format: str | None,
    number_format: str | None,
    signage_convention: str | None,
    col_sep: str | None,
    amount_type_strategy: str | None = None,
    amount_type_inflow_value: str | None = None,
) -> dict[str, Any]:
    raw = {
        "date_format": date_format,
        "number_format": number_format,
        "signage_convention": signage_convention,
        "col_sep": "\t" if col_sep in {"tab", "\\t"} else col_sep,
        "amount_type_strategy": amount_type_strategy,
        "amount_type_inflow_value": amount_type_inflow_value,
    }
    return {k: v for k, v in raw.items() if v is not None}


def _print_issues(issues) -> None:
    for issue in issues:
        print(f"row {issue.row_index + 1}\t{issue.field}\t{issue.message}")


def _print_counts(counts: dict[str, int]) -> None:
    for key, n in counts.items():
        print(f"{key}\t{n}")


def _lookup_account(session, name: str | None):
    from sqlalchemy import select

    from db.models.finance import Account

    if name is None:
        return None
    account = session.scalars(select(Account).where(Account.name == name)).first()
    if account is None:
        raise LookupError(f"account not found: {name!r}")
    return account


# ---- Command handlers ---------------------------------------------------------


def cmd_template(kind: str, *, include_account: bool = True) -> int:
    """Print the example CSV for ``kind``."""

    from .api import csv_template

    try:
        text = csv_template(kind, include_account=include_account)
    except ImportPipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    sys.stdout.write(text)
    return 0


def cmd_check(
    csv_path: str,
    *,
    kind: str,
    single_account: bool = False,
    **settings: Any,
) -> int:
    """Validate a CSV without touching the database.

    Prints one line per issue (``row <n>\\t<field>\\t<message>``, 1-based
    rows) and returns ``1`` when any exist.
    """

    from db.models.imports import Import
    from .importers import importer_class
    from .models import ImportSettings

    text = _read_csv(csv_path)
    if text is None:
        return 1
    try:
        parsed = ImportSettings(**settings)
        importer_cls = importer_class(kind)
        # A placeholder account id only switches off the per-row account column.
        imp = Import(
            kind=kind,
            raw_file_str=text,
            account_id=0 if single_account else None,
            column_map={},
            **parsed.model_dump(),
        )
        importer = importer_cls(imp)
        result = importer.validate()
    except (ValidationError, ImportPipelineError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except csv.Error as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1

    if result.ok:
        print(f"OK: {len(importer.rows)} rows")
        return 0
    _print_issues(result.issues)
    return 1


def cmd_dry_run(
    csv_path: str,
    *,
    kind: str,
    account: str | None = None,
    database_url: str | None = None,
    **settings: Any,
) -> int:
    """Print the record counts an import would create; nothing is kept."""

    from db.client import get_session
    from . import api

    text = _read_csv(csv_path)
    if text is None:
        return 1

    session = get_session(database_url=database_url)
    try:
        imp = api.create_import(
            session,
            kind=kind,
            csv_text=text,
            account=_lookup_account(session, account),
            **settings,
        )
        api.sync_mappings(session, imp)
        counts = api.dry_run(session, imp)
    except (ValidationError, ImportPipelineError, LookupError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except csv.Error as e:
        print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
        return 1
    finally:
        session.rollback()
        session.close()

    _print_counts(counts)
    return 0


def cmd_import(
    csv_path: str,
    *,
    kind: str,
    account: str | None = None,
    database_url: str | None = None,
    interactive: bool = False,
    selector=None,
    **settings: Any,
) -> int:
    """Create, map and publish an import in one go.

    With ``interactive`` every mapping is confirmed through the terminal
    selector (or ``selector`` when given) before publishing.
    """

    from db.client import get_session
    from . import api
    from .review import confirm_mappings

    text = _read_csv(csv_path)
    if text is None:
        return 1

    session = get_session(database_url=database_url)
    try:
        try:
            imp = api.create_import(
                session,
                kind=kind,
                csv_text=text,
                account=_lookup_account(session, account),
                **settings,
            )
            api.sync_mappings(session, imp)
            session.commit()
        except (ValidationError, ImportPipelineError, LookupError) as e:
            session.rollback()
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except csv.Error as e:
            session.rollback()
            print(f"Error: Failed to parse CSV: {e}", file=sys.stderr)
            return 1

        if interactive or selector is not None:
            confirm_mappings(session, imp, selector=selector)
            session.commit()

        try:
            result = api.publish(session, imp)
        except ImportPipelineError as e:
            print(f"Error: {e}", file=sys.stderr)
            issues = getattr(e, "issues", None)
            if issues:
                _print_issues(issues)
            return 1
        except Exception as e:
            print(f"Error: import {imp.id} failed: {e}", file=sys.stderr)
            return 1
    finally:
        session.close()

    print(f"import\t{imp.id}")
    _print_counts(result.created)
    if result.skipped_rows:
        print("skipped_rows\t" + ",".join(str(i + 1) for i in result.skipped_rows))
    return 0


def cmd_revert(import_id: int, *, database_url: str | None = None) -> int:
    """Revert a completed import by id."""

    from db.client import session_scope
    from db.models.imports import Import
    from . import api

    try:
        with session_scope(database_url=database_url) as session:
            imp = session.get(Import, import_id)
            if imp is None:
                print(f"Error: import not found: {import_id}", file=sys.stderr)
                return 1
            counts = api.revert(session, imp)
    except ImportPipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: revert failed: {e}", file=sys.stderr)
        return 1

    _print_counts(counts)
    return 0


# ---- Typer-based console interface ---------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Import transactions, trades and portfolio allocations from CSV files. "
        "Loads DATABASE_URL from a local .env before running."
    ),
)

# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
CSV_PATH_OPTION: OptionInfo = typer.Option(
    ...,
    "--csv-path",
    help="Path to the CSV file to import",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports missing files itself
)
KIND_OPTION: OptionInfo = typer.Option(
    ..., "--kind", help="Import kind: " + ", ".join(IMPORT_KINDS)
)
ACCOUNT_OPTION: OptionInfo = typer.Option(
    ..., "--account", help="Post every row to this existing account (by name)."
)
DATABASE_URL_OPTION: OptionInfo = typer.Option(
    ..., "--database-url", help="Override DATABASE_URL (falls back to env var)."
)
DATE_FORMAT_OPTION: OptionInfo = typer.Option(
    ..., "--date-format", help="strftime format of the date column (default %m/%d/%Y)."
)
NUMBER_FORMAT_OPTION: OptionInfo = typer.Option(
    ..., "--number-format", help="Number format, e.g. '1,234.56' or '1.234,56'."
)
SIGNAGE_OPTION: OptionInfo = typer.Option(
    ..., "--signage", help="inflows_positive (default) or inflows_negative."
)
COL_SEP_OPTION: OptionInfo = typer.Option(
    ..., "--col-sep", help="Column separator: ',', ';', '|' or 'tab'."
)
AMOUNT_TYPE_STRATEGY_OPTION: OptionInfo = typer.Option(
    ...,
    "--amount-type-strategy",
    help="signed_amount (default) or custom_column (sign from the entity_type column).",
)
INFLOW_VALUE_OPTION: OptionInfo = typer.Option(
    ...,
    "--amount-type-inflow-value",
    help="entity_type value that marks an inflow (custom_column only).",
)


def _exit(code: int) -> None:
    if code:
        raise typer.Exit(code)


@app.command("template")
def template_cmd(
    kind: Annotated[str, typer.Argument(help="Import kind")] = "transaction",
    *,
    no_account: bool = typer.Option(
        False, "--no-account", help="Omit the account column (single-account import)."
    ),
) -> None:
    """Print an example CSV for an import kind."""

    _exit(cmd_template(kind, include_account=not no_account))


@app.command("check")
def check_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    kind: Annotated[str, KIND_OPTION] = "transaction",
    *,
    single_account: bool = typer.Option(
        False, "--single-account", help="Validate as if every row posts to one account."
    ),
    date_format: Annotated[str | None, DATE_FORMAT_OPTION] = None,
    number_format: Annotated[str | None, NUMBER_FORMAT_OPTION] = None,
    signage: Annotated[str | None, SIGNAGE_OPTION] = None,
    col_sep: Annotated[str | None, COL_SEP_OPTION] = None,
    amount_type_strategy: Annotated[str | None, AMOUNT_TYPE_STRATEGY_OPTION] = None,
    inflow_value: Annotated[str | None, INFLOW_VALUE_OPTION] = None,
) -> None:
    """Validate a CSV and list row issues without using the database."""

    _exit(
        cmd_check(
            str(csv_path),
            kind=kind,
            single_account=single_account,
            **_settings_kwargs(
                date_format=date_format,
                number_format=number_format,
                signage_convention=signage,
                col_sep=col_sep,
                amount_type_strategy=amount_type_strategy,
                amount_type_inflow_value=inflow_value,
            ),
        )
    )


@app.command("dry-run")
def dry_run_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    kind: Annotated[str, KIND_OPTION] = "transaction",
    account: Annotated[str | None, ACCOUNT_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    *,
    date_format: Annotated[str | None, DATE_FORMAT_OPTION] = None,
    number_format: Annotated[str | None, NUMBER_FORMAT_OPTION] = None,
    signage: Annotated[str | None, SIGNAGE_OPTION] = None,
    col_sep: Annotated[str | None, COL_SEP_OPTION] = None,
    amount_type_strategy: Annotated[str | None, AMOUNT_TYPE_STRATEGY_OPTION] = None,
    inflow_value: Annotated[str | None, INFLOW_VALUE_OPTION] = None,
) -> None:
    """Show how many records an import would create (nothing is saved)."""

    _exit(
        cmd_dry_run(
            str(csv_path),
            kind=kind,
            account=account,
            database_url=database_url,
            **_settings_kwargs(
                date_format=date_format,
                number_format=number_format,
                signage_convention=signage,
                col_sep=col_sep,
                amount_type_strategy=amount_type_strategy,
                amount_type_inflow_value=inflow_value,
            ),
        )
    )


@app.command("import")
def import_cmd(
    csv_path: Annotated[Path, CSV_PATH_OPTION],
    kind: Annotated[str, KIND_OPTION] = "transaction",
    account: Annotated[str | None, ACCOUNT_OPTION] = None,
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
    *,
    interactive: bool = typer.Option(
        False, "--interactive", help="Confirm each account/category/tag mapping."
    ),
    date_format: Annotated[str | None, DATE_FORMAT_OPTION] = None,
    number_format: Annotated[str | None, NUMBER_FORMAT_OPTION] = None,
    signage: Annotated[str | None, SIGNAGE_OPTION] = None,
    col_sep: Annotated[str | None, COL_SEP_OPTION] = None,
    amount_type_strategy: Annotated[str | None, AMOUNT_TYPE_STRATEGY_OPTION] = None,
    inflow_value: Annotated[str | None, INFLOW_VALUE_OPTION] = None,
) -> None:
    """Import a CSV into the ledger (all rows or none)."""

    _exit(
        cmd_import(
            str(csv_path),
            kind=kind,
            account=account,
            database_url=database_url,
            interactive=interactive,
            **_settings_kwargs(
                date_format=date_format,
                number_format=number_format,
                signage_convention=signage,
                col_sep=col_sep,
                amount_type_strategy=amount_type_strategy,
                amount_type_inflow_value=inflow_value,
            ),
        )
    )


@app.command("revert")
def revert_cmd(
    import_id: Annotated[int, typer.Argument(help="Id of a completed import")],
    database_url: Annotated[str | None, DATABASE_URL_OPTION] = None,
) -> None:
    """Delete everything a completed import created."""

    _exit(cmd_revert(import_id, database_url=database_url))


@app.callback()
def _root() -> None:
    """Load ``.env`` from the working directory and configure logging."""

    # override=False keeps variables already set in the environment
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
