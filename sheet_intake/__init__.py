"""Spreadsheet ingestion and duplicate reconciliation for customer imports."""

from __future__ import annotations

__version__ = "1.0.0"

from sheet_intake.errors import (
    ConfigError,
    EmptyFileError,
    EmptyWorkbookError,
    IntakeError,
    NoHeadersError,
    UnreadableWorkbookError,
)
from sheet_intake.field_types import FieldType, detect_field_type
from sheet_intake.fingerprint import fingerprint
from sheet_intake.parser import ParsedTable, ParseOptions, parse_workbook
from sheet_intake.reconcile import (
    CustomerRecord,
    MatchResult,
    MatchType,
    ReconciliationReport,
    analyze,
    normalize_for_comparison,
)

__all__ = [
    "__version__",
    "ConfigError",
    "CustomerRecord",
    "EmptyFileError",
    "EmptyWorkbookError",
    "FieldType",
    "IntakeError",
    "MatchResult",
    "MatchType",
    "NoHeadersError",
    "ParseOptions",
    "ParsedTable",
    "ReconciliationReport",
    "UnreadableWorkbookError",
    "analyze",
    "detect_field_type",
    "fingerprint",
    "normalize_for_comparison",
    "parse_workbook",
]
