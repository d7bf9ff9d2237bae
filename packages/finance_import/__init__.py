"""Public interface for the ``finance_import`` package.

This module exposes the service-layer functions and the public models/types
as the stable import surface. There is no runtime logic here, only symbol
re-exports.
"""

from .api import (
    check,
    create_import,
    csv_template,
    delete_import,
    dry_run,
    publish,
    revert,
    sync_mappings,
    update_mapping,
)
from .chat_errors import ErrorDetails, OpenAIProviderError, ProviderError, classify_error
from .errors import (
    ImportNotPublishableError,
    ImportPipelineError,
    MaxRowCountExceededError,
    MissingMappingError,
    UnknownImportKindError,
)
from .importers import Importer, importer_for
from .models import ImportKind, ImportResult, ImportSettings, RowIssue, ValidationResult
from .securities import ResolutionError, SecurityCache, SecurityResolver

__all__ = [
    # API
    "check",
    "create_import",
    "csv_template",
    "delete_import",
    "dry_run",
    "publish",
    "revert",
    "sync_mappings",
    "update_mapping",
    "importer_for",
    "classify_error",
    # Types
    "ErrorDetails",
    "ImportKind",
    "ImportResult",
    "ImportSettings",
    "Importer",
    "RowIssue",
    "SecurityCache",
    "SecurityResolver",
    "ValidationResult",
    # Errors
    "ImportNotPublishableError",
    "ImportPipelineError",
    "MaxRowCountExceededError",
    "MissingMappingError",
    "OpenAIProviderError",
    "ProviderError",
    "ResolutionError",
    "UnknownImportKindError",
]
