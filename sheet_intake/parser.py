"""
Workbook parser: raw upload bytes in, cleaned and typed table out.

    table = parse_workbook(data, ParseOptions(preferred_sheet_name="Kunder"))
    table.headers, table.rows, table.skipped_metadata_row_count

The result carries enough provenance (sheet scores, header row, removed
columns) for a preview screen to explain every automatic decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from sheet_intake.cells import forward_fill_merged_cells, is_empty_row, normalize_value, prune_sparse_columns
from sheet_intake.errors import EmptyFileError, EmptyWorkbookError, NoHeadersError
from sheet_intake.field_types import ColumnProfile, build_column_profiles
from sheet_intake.fingerprint import file_hash, fingerprint
from sheet_intake.header_detection import DEFAULT_MAX_SCAN, SheetInfo, detect_header_row, select_best_sheet
from sheet_intake.patterns import DEFAULT_HEADER_PATTERNS, HeaderPattern
from sheet_intake.workbook import decode_workbook

logger = logging.getLogger(__name__)

PLACEHOLDER_HEADER = "Kolonne_{index}"


@dataclass(frozen=True)
class ParseOptions:
    max_preview_rows: int = 10
    skip_empty_rows: bool = True
    preferred_sheet_name: str | None = None
    max_header_scan: int = DEFAULT_MAX_SCAN


@dataclass
class ParsedTable:
    headers: list[str]
    rows: list[dict[str, Any]]
    header_row_index: int
    selected_sheet_name: str
    all_sheets_info: list[SheetInfo]
    removed_columns: list[str]
    skipped_metadata_row_count: int
    file_hash: str
    column_fingerprint: str
    column_info: list[ColumnProfile] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return len(self.headers)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [dict(row) for row in self.rows],
            "totalRows": self.total_rows,
            "columnCount": self.column_count,
            "headerRowIndex": self.header_row_index,
            "selectedSheetName": self.selected_sheet_name,
            "allSheetsInfo": [info.to_dict() for info in self.all_sheets_info],
            "removedColumns": list(self.removed_columns),
            "skippedMetadataRowCount": self.skipped_metadata_row_count,
            "fileHash": self.file_hash,
            "columnFingerprint": self.column_fingerprint,
            "columnInfo": [profile.to_dict() for profile in self.column_info],
        }


def extract_headers(header_row: Sequence[Any]) -> list[str]:
    """Header names from one row: blanks get positional names, repeats get ``_1``, ``_2``..."""
    headers: list[str] = []
    used: set[str] = set()
    for position, cell in enumerate(header_row, start=1):
        value = normalize_value(cell)
        base = str(value) if value is not None else PLACEHOLDER_HEADER.format(index=position)
        unique = base
        suffix = 1
        while unique in used:
            unique = f"{base}_{suffix}"
            suffix += 1
        used.add(unique)
        headers.append(unique)
    return headers


def parse_workbook(
    data: bytes,
    options: ParseOptions | None = None,
    *,
    file_name: str | None = None,
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> ParsedTable:
    """
    Parse an uploaded workbook into a ``ParsedTable``.

    Raises:
        UnreadableWorkbookError  container could not be decoded
        EmptyWorkbookError       no sheets
        EmptyFileError           selected sheet has no rows
        NoHeadersError           detected header row is blank
    """
    opts = options or ParseOptions()
    digest = file_hash(data)

    workbook = decode_workbook(data, file_name=file_name)
    if not workbook.sheets:
        raise EmptyWorkbookError()

    selection = select_best_sheet(
        workbook,
        preferred_sheet_name=opts.preferred_sheet_name,
        max_scan=opts.max_header_scan,
        patterns=patterns,
    )
    sheet = forward_fill_merged_cells(workbook.get(selection.sheet_name).copy())
    grid = sheet.grid()
    if not grid:
        raise EmptyFileError(sheet.name)

    header_index = detect_header_row(grid, opts.max_header_scan, patterns)
    # A blank header row would yield nothing but placeholder names.
    if is_empty_row(grid[header_index]):
        raise NoHeadersError(header_index)
    headers = extract_headers(grid[header_index])
    logger.info("sheet '%s': header row %d, %d column(s)", sheet.name, header_index, len(headers))

    column_fingerprint = fingerprint(headers)

    rows: list[dict[str, Any]] = []
    for raw in grid[header_index + 1:]:
        if opts.skip_empty_rows and is_empty_row(raw):
            continue
        rows.append({header: normalize_value(raw[idx]) for idx, header in enumerate(headers)})

    kept_headers, rows, removed = prune_sparse_columns(headers, rows)
    profiles = build_column_profiles(kept_headers, rows, opts.max_preview_rows)

    logger.debug("parsed %d row(s); fingerprint=%s", len(rows), column_fingerprint)
    return ParsedTable(
        headers=kept_headers,
        rows=rows,
        header_row_index=header_index,
        selected_sheet_name=sheet.name,
        all_sheets_info=selection.sheets,
        removed_columns=removed,
        skipped_metadata_row_count=header_index,
        file_hash=digest,
        column_fingerprint=column_fingerprint,
        column_info=profiles,
    )
