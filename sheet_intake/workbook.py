"""
In-memory workbook model and container decoding.

Supports: .xlsx .xlsm (openpyxl, merged ranges kept), .xls (pandas + xlrd),
.ods (pandas + odfpy) and delimited text (.csv .tsv .txt).

The container is sniffed from the bytes themselves; an optional file name is
only a tie-breaker. Cell values keep their native types (numbers, dates,
booleans); normalization happens later in ``cells``.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from sheet_intake.errors import UnreadableWorkbookError

logger = logging.getLogger(__name__)

ZIP_MAGIC = b"PK\x03\x04"
OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
ODS_MIMETYPE = b"application/vnd.oasis.opendocument.spreadsheet"
CSV_SHEET_NAME = "csv"
# Semicolon first: Excel with a Norwegian locale saves ';'-separated CSV since ',' is the decimal mark.
DELIMITER_CANDIDATES = (";", ",", "\t", "|")
DELIMITER_SAMPLE_LINES = 50


# ══════════════════════════════════════════════════════════════════════════════
# MODEL
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MergedRange:
    """Rectangular merge, 0-based and inclusive on both ends."""

    min_row: int
    min_col: int
    max_row: int
    max_col: int

    @classmethod
    def from_openpyxl(cls, cell_range) -> "MergedRange":
        return cls(
            min_row=cell_range.min_row - 1,
            min_col=cell_range.min_col - 1,
            max_row=cell_range.max_row - 1,
            max_col=cell_range.max_col - 1,
        )


@dataclass
class Sheet:
    name: str
    rows: list[list[Any]] = field(default_factory=list)
    merged_ranges: list[MergedRange] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    def copy(self) -> "Sheet":
        return Sheet(
            name=self.name,
            rows=[list(row) for row in self.rows],
            merged_ranges=list(self.merged_ranges),
        )

    def grid(self) -> list[list[Any]]:
        """Rows padded with None to the sheet width."""
        width = self.column_count
        return [list(row) + [None] * (width - len(row)) for row in self.rows]


@dataclass
class Workbook:
    sheets: list[Sheet] = field(default_factory=list)
    source_format: str = "unknown"

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    def get(self, name: str | None) -> Sheet | None:
        if name is None:
            return None
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _trim_row(values) -> list[Any]:
    row = list(values)
    while row and _is_blank(row[-1]):
        row.pop()
    return row


def _trim_rows(rows: list[list[Any]]) -> list[list[Any]]:
    trimmed = [_trim_row(row) for row in rows]
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT SNIFFING
# ══════════════════════════════════════════════════════════════════════════════

def sniff_format(data: bytes, file_name: str | None = None) -> str:
    """Return one of ``xlsx``, ``xls``, ``ods`` or ``csv``."""
    if data.startswith(ZIP_MAGIC):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = set(archive.namelist())
                if "mimetype" in names and archive.read("mimetype").strip() == ODS_MIMETYPE:
                    return "ods"
        except zipfile.BadZipFile:
            # Truncated archives still go to openpyxl so the error names the workbook.
            return "xlsx"
        return "xlsx"
    if data.startswith(OLE_MAGIC):
        return "xls"
    suffix = file_name.lower().rsplit(".", 1)[-1] if file_name and "." in file_name else ""
    if suffix in {"xlsx", "xlsm", "xls", "ods"}:
        # Extension says workbook but bytes disagree: let the workbook reader fail loudly.
        return suffix
    return "csv"


def _is_encrypted_ole(data: bytes) -> bool:
    return data.startswith(OLE_MAGIC) and b"E\x00n\x00c\x00r\x00y\x00p\x00t\x00e\x00d\x00P\x00a\x00c\x00k\x00a\x00g\x00e" in data


# ══════════════════════════════════════════════════════════════════════════════
# OOXML (openpyxl)
# ══════════════════════════════════════════════════════════════════════════════

def _load_ooxml(data: bytes) -> Workbook:
    from openpyxl import load_workbook

    try:
        book = load_workbook(io.BytesIO(data), data_only=True)
    except Exception as exc:
        raise UnreadableWorkbookError(f"Could not read workbook: {exc}") from exc

    sheets: list[Sheet] = []
    for worksheet in book.worksheets:
        rows = _trim_rows([list(values) for values in worksheet.iter_rows(values_only=True)])
        merged = [MergedRange.from_openpyxl(rng) for rng in worksheet.merged_cells.ranges]
        sheets.append(Sheet(name=worksheet.title, rows=rows, merged_ranges=merged))
    book.close()
    return Workbook(sheets=sheets, source_format="xlsx")


# ══════════════════════════════════════════════════════════════════════════════
# LEGACY / OPENDOCUMENT (pandas)
# ══════════════════════════════════════════════════════════════════════════════

def _frame_to_rows(df) -> list[list[Any]]:
    import pandas as pd

    boxed = df.astype(object).where(pd.notna(df), None)
    return _trim_rows([list(row) for row in boxed.itertuples(index=False, name=None)])


def _load_with_pandas(data: bytes, source_format: str) -> Workbook:
    import pandas as pd

    engine = None
    if source_format == "xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd — run: pip install 'sheet-intake[excel-legacy]'")
        engine = "xlrd"
    elif source_format == "ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy — run: pip install 'sheet-intake[ods]'")
        engine = "odf"

    try:
        frames = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, engine=engine)
    except Exception as exc:
        raise UnreadableWorkbookError(f"Could not read workbook: {exc}") from exc

    sheets = [Sheet(name=str(name), rows=_frame_to_rows(df)) for name, df in frames.items()]
    return Workbook(sheets=sheets, source_format=source_format)


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITED TEXT
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    import chardet

    if raw.startswith(b"\xef\xbb\xbf"):
        return "utf-8-sig"
    result = chardet.detect(raw[:200_000])
    return result.get("encoding") or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode line by line: UTF-8, then the detected encoding, then latin-1,
    finally CP1252 with replacement so decoding never fails outright.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    text = "\n".join(decoded_lines)
    return text.lstrip("\ufeff")


def _delimiter_consistency(lines: list[str], delimiter: str) -> tuple[float, int]:
    """(share of lines at the most common width, that width); zero when it never splits."""
    rows = [row for row in csv.reader(lines, delimiter=delimiter) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        return 0.0, 0
    width, count = Counter(len(row) for row in rows).most_common(1)[0]
    if width < 2:
        return 0.0, width
    return count / len(rows), width


def _detect_delimiter(text: str) -> str:
    """
    Pick the delimiter that splits the sample into the steadiest column count.

    Addresses ("Gate 1, 2. etg") and amounts ("12,5") put stray commas into
    semicolon exports, so a comma only wins when it lines the rows up better.
    Ties go to the earlier candidate.
    """
    lines = [line for line in text.splitlines() if line.strip()][:DELIMITER_SAMPLE_LINES]
    best_delim = DELIMITER_CANDIDATES[0]
    best_key = (0.0, 0)
    for delim in DELIMITER_CANDIDATES:
        key = _delimiter_consistency(lines, delim)
        if key > best_key:
            best_delim, best_key = delim, key
    return best_delim


def _load_delimited(data: bytes) -> Workbook:
    encoding = _detect_encoding(data)
    text = _read_text_safely(data, encoding)
    delimiter = _detect_delimiter(text)
    try:
        rows = [list(row) for row in csv.reader(io.StringIO(text), delimiter=delimiter)]
    except csv.Error as exc:
        raise UnreadableWorkbookError(f"Could not parse delimited text: {exc}") from exc
    logger.debug("decoded delimited text: encoding=%s delimiter=%r rows=%d", encoding, delimiter, len(rows))
    return Workbook(sheets=[Sheet(name=CSV_SHEET_NAME, rows=_trim_rows(rows))], source_format="csv")


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def decode_workbook(data: bytes, *, file_name: str | None = None) -> Workbook:
    """
    Decode raw upload bytes into a ``Workbook``.

    Raises:
        UnreadableWorkbookError  if the container cannot be decoded.
        ImportError              if an optional engine (xlrd, odfpy) is missing.
    """
    source_format = sniff_format(data, file_name)
    logger.debug("sniffed container format: %s (%d bytes)", source_format, len(data))

    if source_format in {"xlsx", "xlsm"}:
        return _load_ooxml(data)
    if source_format == "xls":
        if _is_encrypted_ole(data):
            raise UnreadableWorkbookError("Password-protected / encrypted workbooks are not supported")
        return _load_with_pandas(data, "xls")
    if source_format == "ods":
        return _load_with_pandas(data, "ods")
    return _load_delimited(data)
