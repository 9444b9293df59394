"""Rule-based column mapping suggestions and their application to parsed rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from sheet_intake.parser import ParsedTable
from sheet_intake.patterns import DEFAULT_HEADER_PATTERNS, HeaderPattern
from sheet_intake.reconcile import CustomerRecord

MATCHED_CONFIDENCE = 0.9


@dataclass
class ColumnMapping:
    source_column: str
    target_field: str | None
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceColumn": self.source_column,
            "targetField": self.target_field,
            "confidence": self.confidence,
        }


def suggest_column_mapping(
    headers: Sequence[str],
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> list[ColumnMapping]:
    """One suggestion per header. Each target field is claimed by the first
    header that matches it; later headers for the same field stay unmapped."""
    claimed: set[str] = set()
    suggestions: list[ColumnMapping] = []
    for header in headers:
        target = None
        for candidate in patterns:
            if candidate.field in claimed:
                continue
            if candidate.matches(header):
                target = candidate.field
                break
        if target is None:
            suggestions.append(ColumnMapping(header, None, 0.0))
        else:
            claimed.add(target)
            suggestions.append(ColumnMapping(header, target, MATCHED_CONFIDENCE))
    return suggestions


def to_customer_records(table: ParsedTable, mapping: Sequence[ColumnMapping]) -> list[CustomerRecord]:
    active = [(item.source_column, item.target_field) for item in mapping if item.target_field]
    records: list[CustomerRecord] = []
    for row in table.rows:
        data = {target: row.get(source) for source, target in active if source in row}
        records.append(CustomerRecord.from_mapping(data))
    return records
