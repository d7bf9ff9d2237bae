"""Exception types raised by the import pipeline."""

from __future__ import annotations

from collections.abc import Sequence

from .models import RowIssue


class ImportPipelineError(Exception):
    """Base class for failures raised by ``finance_import``."""


class UnknownImportKindError(ImportPipelineError, ValueError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"unknown import kind: {kind!r}")
        self.kind = kind


class MaxRowCountExceededError(ImportPipelineError):
    def __init__(self, count: int, limit: int) -> None:
        super().__init__(f"CSV has {count} rows; at most {limit} rows can be imported at once")
        self.count = count
        self.limit = limit


class MissingMappingError(ImportPipelineError):
    """A row references a label that no mapping resolves to an entity."""

    def __init__(self, mapping_type: str, key: str, *, row_index: int | None = None) -> None:
        where = f" (row {row_index})" if row_index is not None else ""
        super().__init__(f"no {mapping_type} mapped for {key!r}{where}")
        self.mapping_type = mapping_type
        self.key = key
        self.row_index = row_index


class ImportNotPublishableError(ImportPipelineError):
    """Publishing was attempted while row issues or invalid mappings remain."""

    def __init__(self, issues: Sequence[RowIssue], *, invalid_mappings: Sequence[str] = ()) -> None:
        parts: list[str] = []
        if issues:
            parts.append(f"{len(issues)} row issue(s)")
        if invalid_mappings:
            parts.append("unresolved mappings: " + ", ".join(invalid_mappings))
        super().__init__("import is not publishable: " + "; ".join(parts or ["unknown reason"]))
        self.issues = list(issues)
        self.invalid_mappings = list(invalid_mappings)


__all__ = [
    "ImportPipelineError",
    "UnknownImportKindError",
    "MaxRowCountExceededError",
    "MissingMappingError",
    "ImportNotPublishableError",
]
