from __future__ import annotations

import hashlib
import io
import unittest
from unittest import mock

from openpyxl import Workbook as OpenpyxlWorkbook

from sheet_intake.errors import (
    EmptyFileError,
    EmptyWorkbookError,
    IntakeError,
    NoHeadersError,
    UnreadableWorkbookError,
)
from sheet_intake.field_types import FieldType
from sheet_intake.parser import ParseOptions, extract_headers, parse_workbook
from sheet_intake.workbook import Sheet, Workbook


def workbook_bytes(sheets: dict[str, list[list]], merges: dict[str, list[str]] | None = None) -> bytes:
    wb = OpenpyxlWorkbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(name)
        for row in rows:
            ws.append(row)
        for cell_range in (merges or {}).get(name, []):
            ws.merge_cells(cell_range)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class ExtractHeadersTests(unittest.TestCase):
    def test_blank_and_repeated_headers(self):
        self.assertEqual(
            extract_headers(["Navn", " Navn ", None, "Adresse", "Navn", ""]),
            ["Navn", "Navn_1", "Kolonne_3", "Adresse", "Navn_2", "Kolonne_6"],
        )

    def test_suffix_never_collides_with_an_existing_header(self):
        self.assertEqual(extract_headers(["A", "A_1", "A"]), ["A", "A_1", "A_2"])

    def test_non_text_headers_are_stringified(self):
        self.assertEqual(extract_headers([2024, "Navn"]), ["2024", "Navn"])


class ParseWorkbookTests(unittest.TestCase):
    def test_metadata_rows_above_the_header_are_skipped(self):
        data = workbook_bytes(
            {
                "Kunder": [
                    ["ACME EXPORT", None],
                    ["Navn", "Adresse", "Telefon"],
                    ["Ola", "Gate 1", "12345678"],
                    ["Kari", "Vei 2", "87654321"],
                ]
            }
        )
        table = parse_workbook(data)

        self.assertEqual(table.headers, ["Navn", "Adresse", "Telefon"])
        self.assertEqual(table.header_row_index, 1)
        self.assertEqual(table.skipped_metadata_row_count, 1)
        self.assertEqual(table.selected_sheet_name, "Kunder")
        self.assertEqual(table.total_rows, 2)
        self.assertEqual(table.rows[0], {"Navn": "Ola", "Adresse": "Gate 1", "Telefon": "12345678"})
        self.assertEqual(table.file_hash, hashlib.sha256(data).hexdigest())
        self.assertEqual(table.column_info[2].detected_type, FieldType.PHONE)

    def test_parsing_is_deterministic(self):
        data = workbook_bytes(
            {
                "Kunder": [
                    ["Navn", "Adresse", "Postnr"],
                    ["Ola", "Gate 1", "0150"],
                    ["Kari", "Vei 2", "5003"],
                ]
            }
        )
        self.assertEqual(parse_workbook(data).to_dict(), parse_workbook(data).to_dict())

    def test_duplicate_and_blank_headers_get_unique_names(self):
        data = workbook_bytes(
            {
                "Kunder": [
                    ["Navn", "Navn", None, "Adresse"],
                    ["Ola", "AS", "x", "Gate 1"],
                    ["Kari", "ENK", "y", "Vei 2"],
                    ["Per", "AS", "z", "Torget 3"],
                ]
            }
        )
        table = parse_workbook(data)
        self.assertEqual(table.headers, ["Navn", "Navn_1", "Kolonne_3", "Adresse"])
        self.assertEqual(table.rows[1]["Navn_1"], "ENK")

    def test_sparse_columns_are_removed(self):
        rows = [["Navn", "Adresse", "Notater", "Telefon"]]
        for i in range(100):
            rows.append(
                [
                    f"Kunde {i}",
                    f"Gate {i}",
                    "ring først" if i < 4 else None,
                    None if i < 10 else f"9{i:07d}",
                ]
            )
        table = parse_workbook(workbook_bytes({"Kunder": rows}))

        self.assertNotIn("Notater", table.headers)
        self.assertEqual(table.removed_columns, ["Notater"])
        self.assertIn("Telefon", table.headers)
        self.assertEqual(table.total_rows, 100)
        for row in table.rows:
            self.assertEqual(set(row), set(table.headers))

    def test_empty_rows_are_skipped_unless_asked_to_keep_them(self):
        data = workbook_bytes(
            {
                "Kunder": [
                    ["Navn", "Adresse"],
                    ["Ola", "Gate 1"],
                    [None, None],
                    ["Kari", "Vei 2"],
                ]
            }
        )
        self.assertEqual(parse_workbook(data).total_rows, 2)

        kept = parse_workbook(data, ParseOptions(skip_empty_rows=False))
        self.assertEqual(kept.total_rows, 3)
        self.assertEqual(kept.rows[1], {"Navn": None, "Adresse": None})

    def test_merged_cells_are_filled_before_reading(self):
        data = workbook_bytes(
            {
                "Kunder": [
                    ["Kundeliste", None, None],
                    ["Navn", "Adresse", "Kategori"],
                    ["Ola", "Gate 1", "Bedrift"],
                    ["Kari", "Vei 2", None],
                ]
            },
            merges={"Kunder": ["A1:C1", "C3:C4"]},
        )
        table = parse_workbook(data)
        self.assertEqual(table.header_row_index, 1)
        self.assertEqual([row["Kategori"] for row in table.rows], ["Bedrift", "Bedrift"])

    def test_merged_title_does_not_beat_a_partly_blank_header(self):
        rows = [["Serviceavtaler 2024"], ["Objekt", "Merke", None]]
        rows += [[f"Heis {i}", 2015 + i] for i in range(5)]
        data = workbook_bytes({"Avtaler": rows}, merges={"Avtaler": ["A1:C1"]})
        table = parse_workbook(data)
        self.assertEqual(table.header_row_index, 1)
        self.assertEqual(table.headers[:2], ["Objekt", "Merke"])
        self.assertEqual(table.rows[0]["Objekt"], "Heis 0")

    def test_best_sheet_is_chosen_unless_caller_overrides(self):
        data = workbook_bytes(
            {
                "Forside": [["Eksport fra fagsystem"]],
                "Notater": [["a", "b"], ["c", "d"], ["e", "f"]],
                "Kunder": [
                    ["Navn", "Adresse", "Telefon"],
                    ["Ola", "Gate 1", "12345678"],
                    ["Kari", "Vei 2", "87654321"],
                ],
            }
        )
        table = parse_workbook(data)
        self.assertEqual(table.selected_sheet_name, "Kunder")
        self.assertEqual([info.name for info in table.all_sheets_info], ["Forside", "Notater", "Kunder"])

        override = parse_workbook(data, ParseOptions(preferred_sheet_name="Notater"))
        self.assertEqual(override.selected_sheet_name, "Notater")
        self.assertEqual(override.headers, ["a", "b"])

    def test_preview_sample_size_is_bounded(self):
        rows = [["Navn", "Adresse"]] + [[f"Kunde {i}", f"Gate {i}"] for i in range(30)]
        table = parse_workbook(workbook_bytes({"Kunder": rows}), ParseOptions(max_preview_rows=5))
        self.assertEqual(len(table.column_info[0].sample_values), 5)
        self.assertEqual(table.total_rows, 30)

    def test_delimited_text_is_parsed_as_a_single_sheet(self):
        data = "Navn;Adresse;Postnr\nOla;Gate 1;0150\nKari;Vei 2;5003\n".encode("utf-8")
        table = parse_workbook(data, file_name="kunder.csv")
        self.assertEqual(table.selected_sheet_name, "csv")
        self.assertEqual(table.headers, ["Navn", "Adresse", "Postnr"])
        self.assertEqual(table.rows[1]["Postnr"], "5003")
        self.assertEqual(table.column_info[2].detected_type, FieldType.POSTNUMMER)

    def test_to_dict_uses_camel_case_keys(self):
        data = workbook_bytes({"Kunder": [["Navn", "Adresse"], ["Ola", "Gate 1"], ["Kari", "Vei 2"]]})
        payload = parse_workbook(data).to_dict()
        for key in ("headerRowIndex", "selectedSheetName", "allSheetsInfo", "removedColumns",
                    "skippedMetadataRowCount", "fileHash", "columnFingerprint", "totalRows"):
            self.assertIn(key, payload)
        self.assertEqual(payload["totalRows"], len(payload["rows"]))


class ParseErrorTests(unittest.TestCase):
    def test_empty_sheet_raises_empty_file(self):
        wb = OpenpyxlWorkbook()
        buffer = io.BytesIO()
        wb.save(buffer)
        with self.assertRaises(EmptyFileError):
            parse_workbook(buffer.getvalue())

    def test_empty_bytes_raise_empty_file(self):
        with self.assertRaises(EmptyFileError):
            parse_workbook(b"")

    def test_workbook_without_sheets_raises_empty_workbook(self):
        with mock.patch("sheet_intake.parser.decode_workbook", return_value=Workbook(sheets=[])):
            with self.assertRaises(EmptyWorkbookError) as ctx:
                parse_workbook(b"anything")
        self.assertEqual(ctx.exception.code, "empty_workbook")

    def test_blank_rows_in_the_scan_window_raise_no_headers(self):
        rows = [[None, None]] * 3 + [["Ola", "Gate 1"], ["Kari", "Vei 2"]]
        workbook = Workbook(sheets=[Sheet(name="Kunder", rows=rows)])
        with mock.patch("sheet_intake.parser.decode_workbook", return_value=workbook):
            with self.assertRaises(NoHeadersError) as ctx:
                parse_workbook(b"anything", ParseOptions(max_header_scan=3))
        self.assertEqual(ctx.exception.code, "no_headers")
        self.assertEqual(ctx.exception.header_row_index, 0)

    def test_corrupt_workbook_raises_unreadable(self):
        with self.assertRaisesRegex(UnreadableWorkbookError, "Could not read workbook"):
            parse_workbook(b"PK\x03\x04this is not a zip archive", file_name="kunder.xlsx")

    def test_intake_errors_are_value_errors(self):
        self.assertTrue(issubclass(IntakeError, ValueError))
        self.assertTrue(issubclass(EmptyFileError, IntakeError))


if __name__ == "__main__":
    unittest.main()
