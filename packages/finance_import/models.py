"""Data models and type aliases for ``finance_import``.

Plain value types shared across the row parser, the importers and the service
layer. Persistence models live in ``db.models``; nothing here touches a
session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, NamedTuple

from pydantic import BaseModel, ConfigDict, field_validator

# ---------------------------------------------------------------------------
# Import kinds and parsing settings
# ---------------------------------------------------------------------------

type ImportKind = Literal["transaction", "trade", "portfolio_allocation"]
"""Tag naming one importer variant."""

IMPORT_KINDS: tuple[str, ...] = ("transaction", "trade", "portfolio_allocation")

DATE_FORMATS: tuple[str, ...] = (
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%y",
)

# Display form -> (decimal separator, thousands delimiter). An empty decimal
# separator means the format carries no fractional part.
NUMBER_FORMATS: dict[str, tuple[str, str]] = {
    "1,234.56": (".", ","),
    "1.234,56": (",", "."),
    "1 234,56": (",", " "),
    "1,234": ("", ","),
}

SIGNAGE_CONVENTIONS: tuple[str, ...] = ("inflows_positive", "inflows_negative")
AMOUNT_TYPE_STRATEGIES: tuple[str, ...] = ("signed_amount", "custom_column")


class ImportSettings(BaseModel):
    """How the raw CSV text of one import is interpreted.

    Mirrors the parsing columns of ``db.models.Import`` so the row parser can
    run without a session (e.g., in ``check`` and in tests).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    date_format: str = "%m/%d/%Y"
    number_format: str = "1,234.56"
    signage_convention: str = "inflows_positive"
    amount_type_strategy: str = "signed_amount"
    amount_type_inflow_value: str | None = None
    col_sep: str = ","

    @field_validator("date_format")
    @classmethod
    def _known_date_format(cls, v: str) -> str:
        if v not in DATE_FORMATS:
            raise ValueError(f"date_format must be one of {', '.join(DATE_FORMATS)}")
        return v

    @field_validator("number_format")
    @classmethod
    def _known_number_format(cls, v: str) -> str:
        if v not in NUMBER_FORMATS:
            raise ValueError(f"number_format must be one of {', '.join(NUMBER_FORMATS)}")
        return v

    @field_validator("signage_convention")
    @classmethod
    def _known_signage(cls, v: str) -> str:
        if v not in SIGNAGE_CONVENTIONS:
            raise ValueError(f"signage_convention must be one of {', '.join(SIGNAGE_CONVENTIONS)}")
        return v

    @field_validator("amount_type_strategy")
    @classmethod
    def _known_strategy(cls, v: str) -> str:
        if v not in AMOUNT_TYPE_STRATEGIES:
            raise ValueError(
                f"amount_type_strategy must be one of {', '.join(AMOUNT_TYPE_STRATEGIES)}"
            )
        return v

    @field_validator("col_sep")
    @classmethod
    def _single_char_separator(cls, v: str) -> str:
        if not isinstance(v, str) or v not in {",", ";", "\t", "|"}:
            raise ValueError("col_sep must be one of ',', ';', '|' or a tab")
        return v


# ---------------------------------------------------------------------------
# Validation results
# ---------------------------------------------------------------------------


class RowIssue(NamedTuple):
    """One problem found in one CSV row.

    ``row_index`` is 0-based over data rows (the header is not counted).
    """

    row_index: int
    field: str
    message: str


@dataclass(slots=True)
class ValidationResult:
    """Ordered collection of row issues for a whole import."""

    issues: list[RowIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def add(self, row_index: int, field_name: str, message: str) -> None:
        self.issues.append(RowIssue(row_index, field_name, message))

    def for_row(self, row_index: int) -> list[RowIssue]:
        return [i for i in self.issues if i.row_index == row_index]


# ---------------------------------------------------------------------------
# Import outcome
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ImportResult:
    """Counts of records written by one ``Importer.import_`` run.

    ``created`` is keyed like ``Importer.dry_run`` so the two can be compared
    directly. ``skipped_rows`` lists rows whose security-dependent output was
    dropped because the security could not be resolved.
    """

    created: dict[str, int] = field(default_factory=dict)
    skipped_rows: list[int] = field(default_factory=list)

    @property
    def entries(self) -> int:
        return sum(
            n for k, n in self.created.items() if k in {"transactions", "trades", "valuations"}
        )


__all__ = [
    "ImportKind",
    "IMPORT_KINDS",
    "DATE_FORMATS",
    "NUMBER_FORMATS",
    "SIGNAGE_CONVENTIONS",
    "AMOUNT_TYPE_STRATEGIES",
    "ImportSettings",
    "RowIssue",
    "ValidationResult",
    "ImportResult",
]
