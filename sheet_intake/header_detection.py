"""
Header-row and sheet detection.

Real exports put anywhere from zero to a couple of dozen title, filter and
"generated by" rows above the table, often split the workbook into cover,
notes and data sheets, and sometimes leave decoy columns around. Scoring is
additive over four signals, weighted so that the ordering

    known field names > all-text row > fill ratio > distinct values

always holds for a single row.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from typing import Any, Sequence

from sheet_intake.cells import forward_fill_merged_cells, normalize_value
from sheet_intake.patterns import DEFAULT_HEADER_PATTERNS, HeaderPattern, matching_pattern
from sheet_intake.workbook import Sheet, Workbook

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCAN = 20
MIN_HEADER_CELLS = 2
MIN_DISTINCT_VALUES = 3
MIN_SHEET_ROWS = 3
MIN_SHEET_COLUMNS = 2

PATTERN_MATCH_WEIGHT = 4.0
TEXT_ROW_WEIGHT = 3.0
FILL_RATIO_WEIGHT = 2.0
CARDINALITY_WEIGHT = 1.0
HEADER_SCORE_MULTIPLIER = 10

NUMBER_RE = re.compile(r"^[+-]?\d[\d\s.,]*%?$")
DATE_LIKE_RE = re.compile(
    r"^\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}$|^\d{1,2}\.?\s+[A-Za-zæøåÆØÅ]{3,9}\.?\s+\d{2,4}$"
)
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class SheetInfo:
    name: str
    row_count: int
    column_count: int
    header_score: float
    header_row_index: int | None = None
    combined_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        return {
            "name": payload["name"],
            "rowCount": payload["row_count"],
            "columnCount": payload["column_count"],
            "headerScore": round(payload["header_score"], 4),
            "headerRowIndex": payload["header_row_index"],
            "combinedScore": round(payload["combined_score"], 4),
        }


@dataclass
class SheetSelection:
    sheet_name: str
    sheets: list[SheetInfo]
    preferred_honored: bool = False


def _is_data_like(value: Any) -> bool:
    """Numbers, dates and emails are values, not field names."""
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float, datetime, date, time)):
        return True
    text = str(value).strip()
    return bool(NUMBER_RE.match(text) or DATE_LIKE_RE.match(text) or EMAIL_RE.match(text))


def score_header_row(
    row: Sequence[Any],
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> float:
    if not row:
        return 0.0
    non_empty = [value for value in (normalize_value(cell) for cell in row) if value is not None]
    texts = [str(value) for value in non_empty]
    distinct = {text.lower() for text in texts}
    # A forward-filled merged title repeats one value across the row.
    if len(non_empty) < MIN_HEADER_CELLS or len(distinct) < MIN_HEADER_CELLS:
        return 0.0

    score = FILL_RATIO_WEIGHT * (len(non_empty) / len(row))

    if not any(_is_data_like(value) for value in non_empty):
        score += TEXT_ROW_WEIGHT

    if len(distinct) >= MIN_DISTINCT_VALUES:
        score += CARDINALITY_WEIGHT

    score += PATTERN_MATCH_WEIGHT * sum(1 for text in texts if matching_pattern(text, patterns))
    return score


def detect_header_row(
    rows: Sequence[Sequence[Any]],
    max_scan: int = DEFAULT_MAX_SCAN,
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> int:
    """Index of the best-scoring row among the first ``max_scan``; first wins ties."""
    best_index = 0
    best_score = float("-inf")
    for index, row in enumerate(rows[:max_scan]):
        score = score_header_row(row, patterns)
        if score > best_score:
            best_index = index
            best_score = score
    return best_index


def _best_header(rows: list[list[Any]], max_scan: int, patterns: Sequence[HeaderPattern]) -> tuple[int, float]:
    index = detect_header_row(rows, max_scan, patterns)
    return index, score_header_row(rows[index], patterns) if rows else 0.0


def describe_sheet(
    sheet: Sheet,
    max_scan: int = DEFAULT_MAX_SCAN,
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> SheetInfo:
    row_count = sheet.row_count
    column_count = sheet.column_count
    if row_count < MIN_SHEET_ROWS or column_count < MIN_SHEET_COLUMNS:
        return SheetInfo(name=sheet.name, row_count=row_count, column_count=column_count, header_score=0.0)

    filled = forward_fill_merged_cells(sheet.copy())
    grid = filled.grid()
    header_index, header_score = _best_header(grid, max_scan, patterns)
    data_rows = len(grid) - header_index - 1
    combined = header_score * HEADER_SCORE_MULTIPLIER + data_rows + column_count
    return SheetInfo(
        name=sheet.name,
        row_count=row_count,
        column_count=column_count,
        header_score=header_score,
        header_row_index=header_index,
        combined_score=combined,
    )


def select_best_sheet(
    workbook: Workbook,
    preferred_sheet_name: str | None = None,
    max_scan: int = DEFAULT_MAX_SCAN,
    patterns: Sequence[HeaderPattern] = DEFAULT_HEADER_PATTERNS,
) -> SheetSelection:
    """
    Pick the sheet that most looks like the customer table.

    A valid ``preferred_sheet_name`` always wins; diagnostics are still
    computed for every sheet so the caller can show why. Otherwise the
    highest combined score wins, the first sheet on ties or when nothing
    scores at all. Callers reject empty workbooks before getting here.
    """
    infos = [describe_sheet(sheet, max_scan, patterns) for sheet in workbook.sheets]
    if not infos:
        raise ValueError("select_best_sheet() needs at least one sheet")

    if preferred_sheet_name is not None:
        if workbook.get(preferred_sheet_name) is not None:
            logger.info("using caller-selected sheet '%s'", preferred_sheet_name)
            return SheetSelection(sheet_name=preferred_sheet_name, sheets=infos, preferred_honored=True)
        logger.warning(
            "preferred sheet '%s' not found; available: %s",
            preferred_sheet_name,
            workbook.sheet_names,
        )

    best = infos[0]
    for info in infos[1:]:
        if info.combined_score > best.combined_score:
            best = info

    logger.info(
        "selected sheet '%s' (combined score %.1f of %d sheet(s))",
        best.name,
        best.combined_score,
        len(infos),
    )
    return SheetSelection(sheet_name=best.name, sheets=infos)
