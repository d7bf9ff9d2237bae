"""CSV → Row parsing and per-row validation for imports.

Parsing follows RFC 4180 rules via the stdlib :mod:`csv` module. Column order
in the uploaded file is arbitrary: each field key (``date``, ``amount``,
``ticker``, ...) is located either through the import's ``column_map`` (field
key → header label) or, when unmapped, through a header equal to the key.
Headers copied from a CSV template carry a trailing ``*`` on required
columns; the marker is ignored when matching.

Rows are ephemeral. Coercion happens lazily in the accessors, which raise
``ValueError`` on bad input; :func:`validate_rows` turns those failures into
an ordered list of :class:`~finance_import.models.RowIssue` without stopping
at the first bad row.
"""

from __future__ import annotations

import csv
import os
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import StringIO

from .errors import MaxRowCountExceededError
from .models import NUMBER_FORMATS, ImportSettings, ValidationResult

FIELD_KEYS: tuple[str, ...] = (
    "account",
    "date",
    "amount",
    "name",
    "currency",
    "category",
    "tags",
    "notes",
    "ticker",
    "exchange_operating_mic",
    "qty",
    "price",
    "portfolio_value",
    "entity_type",
)

NUMERIC_KEYS: tuple[str, ...] = ("amount", "qty", "price", "portfolio_value")

TAG_SEPARATOR = "|"

_DEFAULT_MAX_ROWS = 10_000
_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_TICKER_RE = re.compile(r"^[A-Z]{1,5}$")
_CURRENCY_SYMBOLS = ("$", "€", "£", "¥")


def max_row_count() -> int:
    """Row limit per import; ``FINANCE_IMPORT_MAX_ROWS`` overrides the default."""

    env_val = os.getenv("FINANCE_IMPORT_MAX_ROWS")
    try:
        limit = int(env_val) if env_val else _DEFAULT_MAX_ROWS
    except ValueError:
        limit = _DEFAULT_MAX_ROWS
    return limit if limit > 0 else _DEFAULT_MAX_ROWS


# ---------------------------------------------------------------------------
# Scalar normalization
# ---------------------------------------------------------------------------


def parse_decimal(raw: str | None, number_format: str = "1,234.56") -> Decimal:
    """Parse a localized amount string into a ``Decimal``.

    Leading ``+``/``-`` signs, a currency symbol and surrounding parentheses
    (negative) are accepted in any order.
    """

    if raw is None:
        raise ValueError("number is required")
    s = raw.strip()
    if not s:
        raise ValueError("number is empty")
    separator, delimiter = NUMBER_FORMATS[number_format]
    negative = False

    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s[:1] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed or not s:
            break

    if delimiter:
        s = s.replace(delimiter, "")
        if delimiter == " ":
            s = s.replace(" ", "")
    if separator and separator != ".":
        s = s.replace(separator, ".")

    try:
        d = Decimal(s)
    except InvalidOperation as exc:
        raise ValueError(f"invalid number: {raw!r}") from exc
    if not d.is_finite():
        raise ValueError(f"invalid number: {raw!r}")
    return -abs(d) if negative else d


def parse_date(raw: str | None, date_format: str = "%m/%d/%Y") -> date:
    """Parse ``raw`` with ``date_format``, falling back to ISO ``YYYY-MM-DD``."""

    if raw is None:
        raise ValueError("date is required")
    s = raw.strip()
    if not s:
        raise ValueError("date is empty")
    # Some exports append a time component; only the date part matters.
    first = s.split()[0]
    for fmt in (date_format, "%Y-%m-%d"):
        try:
            return datetime.strptime(first, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"invalid date {raw!r} for format {date_format}")


# ---------------------------------------------------------------------------
# Row
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Row:
    """One data line of an uploaded CSV, keyed by field key.

    ``index`` is the 0-based position among data rows. Text accessors return
    trimmed strings (``""`` when absent); typed accessors raise ``ValueError``
    when the raw value cannot be coerced.
    """

    index: int
    values: Mapping[str, str]
    settings: ImportSettings
    kind: str = "transaction"

    def raw(self, key: str) -> str:
        return (self.values.get(key) or "").strip()

    # ---- text fields -------------------------------------------------------

    @property
    def account(self) -> str:
        return self.raw("account")

    @property
    def category(self) -> str:
        return self.raw("category")

    @property
    def notes(self) -> str:
        return self.raw("notes")

    @property
    def entity_type(self) -> str:
        return self.raw("entity_type")

    @property
    def currency(self) -> str:
        return self.raw("currency").upper()

    @property
    def ticker(self) -> str:
        return self.raw("ticker").upper()

    @property
    def exchange_operating_mic(self) -> str:
        return self.raw("exchange_operating_mic").upper()

    @property
    def tags_list(self) -> list[str]:
        return [t.strip() for t in self.raw("tags").split(TAG_SEPARATOR) if t.strip()]

    @property
    def name(self) -> str:
        explicit = self.raw("name")
        if explicit:
            return explicit
        if self.kind == "trade":
            qty = self.qty
            side = "Buy" if qty >= 0 else "Sell"
            return f"{side} {abs(qty)} shares of {self.ticker}"
        if self.kind == "portfolio_allocation":
            return "Portfolio Valuation"
        return "Imported transaction"

    # ---- typed fields ------------------------------------------------------

    @property
    def date(self) -> date:
        return parse_date(self.raw("date"), self.settings.date_format)

    @property
    def date_iso(self) -> str:
        return self.date.isoformat()

    @property
    def amount(self) -> Decimal:
        return parse_decimal(self.raw("amount"), self.settings.number_format)

    @property
    def qty(self) -> Decimal:
        return parse_decimal(self.raw("qty"), self.settings.number_format)

    @property
    def price(self) -> Decimal:
        return parse_decimal(self.raw("price"), self.settings.number_format)

    @property
    def portfolio_value(self) -> Decimal:
        return parse_decimal(self.raw("portfolio_value"), self.settings.number_format)

    @property
    def signed_amount(self) -> Decimal:
        """Entry amount in the ledger's outflow-positive convention."""

        if self.kind == "trade":
            return self.qty * self.price
        if self.kind == "portfolio_allocation":
            return self.portfolio_value

        amount = self.amount
        if self.settings.amount_type_strategy == "custom_column":
            if self.entity_type == (self.settings.amount_type_inflow_value or ""):
                return -abs(amount)
            return abs(amount)
        if self.settings.signage_convention == "inflows_positive":
            return -amount
        return amount


# ---------------------------------------------------------------------------
# CSV loading
# ---------------------------------------------------------------------------


def _decode(raw: str | bytes) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if raw.startswith("\ufeff"):
        return raw[1:]
    return raw


def _clean_header(label: str) -> str:
    return label.strip().rstrip("*").strip()


def _resolve_columns(
    headers: Sequence[str], column_map: Mapping[str, str] | None
) -> dict[str, str]:
    """Return field key → actual CSV header for every key present in the file."""

    by_lower = {_clean_header(h).lower(): h for h in headers}
    resolved: dict[str, str] = {}
    for key in FIELD_KEYS:
        label = (column_map or {}).get(key)
        if label:
            header = by_lower.get(_clean_header(label).lower())
            if header is None:
                raise csv.Error(f"column {label!r} mapped to {key!r} is not in the CSV header")
            resolved[key] = header
            continue
        header = by_lower.get(key)
        if header is not None:
            resolved[key] = header
    return resolved


def read_headers(csv_text: str | bytes, *, col_sep: str = ",") -> list[str]:
    """Return the cleaned header labels of ``csv_text`` (empty when no header)."""

    reader = csv.reader(StringIO(_decode(csv_text)), delimiter=col_sep)
    first = next(reader, None) or []
    return [_clean_header(h) for h in first if _clean_header(h)]


def parse_rows(
    csv_text: str | bytes,
    *,
    settings: ImportSettings | None = None,
    column_map: Mapping[str, str] | None = None,
    kind: str = "transaction",
    required_keys: Iterable[str] = (),
) -> list[Row]:
    """Parse CSV text into :class:`Row` objects.

    Raises ``csv.Error`` when the header row is missing, when a mapped label
    does not exist, or when a column for one of ``required_keys`` cannot be
    located. Raises :class:`MaxRowCountExceededError` above the row limit.
    Blank lines are skipped and do not consume an index.
    """

    settings = settings or ImportSettings()
    text = _decode(csv_text)
    if not text.strip():
        raise csv.Error("CSV is empty")

    reader = csv.DictReader(StringIO(text), delimiter=settings.col_sep)
    headers = reader.fieldnames
    if not headers:
        raise csv.Error("CSV appears to have no header row")

    columns = _resolve_columns(headers, column_map)
    missing = sorted(k for k in required_keys if k not in columns)
    if missing:
        raise csv.Error("CSV is missing required columns: " + ", ".join(missing))

    limit = max_row_count()
    rows: list[Row] = []
    for record in reader:
        # DictReader gathers surplus cells under a None key; ignore them.
        if all(not (v or "").strip() for k, v in record.items() if k is not None):
            continue
        values = {key: (record.get(header) or "") for key, header in columns.items()}
        rows.append(Row(index=len(rows), values=values, settings=settings, kind=kind))
        if len(rows) > limit:
            raise MaxRowCountExceededError(len(rows), limit)
    return rows


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check(result: ValidationResult, row: Row, key: str, accessor: str, message: str) -> None:
    if not row.raw(key):
        return
    try:
        getattr(row, accessor)
    except (ValueError, ArithmeticError):
        result.add(row.index, key, message)


def validate_rows(rows: Iterable[Row], *, required_keys: Iterable[str] = ()) -> ValidationResult:
    """Collect coercion and presence problems for every row, in row order."""

    required = tuple(required_keys)
    result = ValidationResult()
    for row in rows:
        for key in required:
            if not row.raw(key):
                result.add(row.index, key, "is required")

        _check(result, row, "date", "date", f"is not a valid date ({row.settings.date_format})")
        for key in NUMERIC_KEYS:
            _check(result, row, key, key, "must be a number")

        if row.currency and not _CURRENCY_RE.match(row.currency):
            result.add(row.index, "currency", "must be a 3-letter ISO currency code")

        if row.kind == "trade" and row.ticker and not _TICKER_RE.match(row.ticker):
            result.add(row.index, "ticker", "Invalid ticker format. Use 1-5 uppercase letters.")

        if row.kind == "portfolio_allocation" and row.ticker:
            for key in ("qty", "price"):
                if not row.raw(key):
                    result.add(row.index, key, "is required when ticker is present")

        if (
            row.kind == "transaction"
            and row.settings.amount_type_strategy == "custom_column"
            and not row.entity_type
        ):
            result.add(row.index, "entity_type", "is required for the custom amount-type column")
    return result


__all__ = [
    "FIELD_KEYS",
    "Row",
    "max_row_count",
    "parse_decimal",
    "parse_date",
    "parse_rows",
    "read_headers",
    "validate_rows",
]
