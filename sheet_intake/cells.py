"""Cell-level cleanup: merged-cell fill, value coercion, empty-row and sparse-column pruning."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Sequence

from sheet_intake.workbook import Sheet

logger = logging.getLogger(__name__)

# A column is dropped once this share of its cells is empty.
SPARSE_COLUMN_RATIO = 0.95
# Below this many rows the ratio is too coarse; a column needs at least two values to stay.
SMALL_TABLE_ROWS = 20
MIN_ROWS_FOR_SMALL_TABLE_RULE = 3


def forward_fill_merged_cells(sheet: Sheet) -> Sheet:
    """Copy each merge's anchor value into every other cell of the range.

    Mutates ``sheet.rows`` in place (rows are padded as needed) and returns
    the same sheet. Grid readers only populate the top-left cell of a merge,
    which would otherwise leave titles and section labels blank elsewhere.
    """
    for merged in sheet.merged_ranges:
        if merged.min_row >= len(sheet.rows):
            continue
        anchor_row = sheet.rows[merged.min_row]
        anchor = anchor_row[merged.min_col] if merged.min_col < len(anchor_row) else None
        if anchor is None:
            continue
        for row_idx in range(merged.min_row, merged.max_row + 1):
            while len(sheet.rows) <= row_idx:
                sheet.rows.append([])
            row = sheet.rows[row_idx]
            if len(row) <= merged.max_col:
                row.extend([None] * (merged.max_col + 1 - len(row)))
            for col_idx in range(merged.min_col, merged.max_col + 1):
                row[col_idx] = anchor
    return sheet


def normalize_value(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, float) and math.isnan(raw):
        return None
    if isinstance(raw, str):
        trimmed = raw.strip()
        return trimmed or None
    if isinstance(raw, datetime):
        return raw.strftime("%Y-%m-%d")
    if isinstance(raw, date):
        return raw.isoformat()
    return raw


def is_empty_row(row: Sequence[Any]) -> bool:
    return all(normalize_value(cell) is None for cell in row)


def sparse_column_threshold(row_count: int) -> float:
    """Empty-cell count at or above which a column is dropped."""
    if row_count < MIN_ROWS_FOR_SMALL_TABLE_RULE:
        return float(row_count)
    if row_count < SMALL_TABLE_ROWS:
        return float(row_count - 1)
    return row_count * SPARSE_COLUMN_RATIO


def prune_sparse_columns(
    headers: list[str],
    rows: list[dict[str, Any]],
) -> tuple[list[str], list[dict[str, Any]], list[str]]:
    """Drop near-empty columns.

    Returns (kept_headers, rows_without_removed_keys, removed_headers). With
    no rows nothing is removed: there is no evidence either way.
    """
    if not rows:
        return list(headers), rows, []

    threshold = sparse_column_threshold(len(rows))
    removed = [
        header
        for header in headers
        if sum(1 for row in rows if row.get(header) is None) >= threshold
    ]
    if not removed:
        return list(headers), rows, []

    logger.info("removing %d near-empty column(s): %s", len(removed), removed)
    removed_set = set(removed)
    kept = [header for header in headers if header not in removed_set]
    pruned_rows = [{header: row.get(header) for header in kept} for row in rows]
    return kept, pruned_rows, removed
