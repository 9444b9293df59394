from __future__ import annotations

import unittest

from sheet_intake.mapping import suggest_column_mapping, to_customer_records
from sheet_intake.parser import ParsedTable
from sheet_intake.patterns import HeaderPattern


class SuggestColumnMappingTests(unittest.TestCase):
    def test_norwegian_headers(self):
        headers = ["Navn", "Adresse", "Postnr", "Sted", "Mobil", "E-post", "Ukjent felt"]
        mapping = suggest_column_mapping(headers)
        self.assertEqual(
            [item.target_field for item in mapping],
            ["navn", "adresse", "postnummer", "poststed", "telefon", "epost", None],
        )
        self.assertEqual(mapping[0].confidence, 0.9)
        self.assertEqual(mapping[-1].confidence, 0.0)

    def test_english_headers(self):
        mapping = suggest_column_mapping(["Customer Name", "Street Address", "Zip Code", "City", "Phone", "Email"])
        self.assertEqual(
            [item.target_field for item in mapping],
            ["navn", "adresse", "postnummer", "poststed", "telefon", "epost"],
        )

    def test_each_target_is_claimed_once(self):
        mapping = suggest_column_mapping(["Telefon", "Mobil", "Navn", "Kundenavn"])
        self.assertEqual([item.target_field for item in mapping], ["telefon", None, "navn", None])

    def test_injected_pattern_library(self):
        patterns = [HeaderPattern.compile(r"^kundenr$", "kundenummer")]
        mapping = suggest_column_mapping(["Kundenr", "Navn"], patterns)
        self.assertEqual([item.target_field for item in mapping], ["kundenummer", None])
        self.assertEqual(mapping[0].to_dict()["sourceColumn"], "Kundenr")


class ToCustomerRecordsTests(unittest.TestCase):
    def test_mapped_columns_become_record_fields(self):
        table = ParsedTable(
            headers=["Kundenavn", "Gateadresse", "Tlf", "Kommentar"],
            rows=[
                {"Kundenavn": "Ola", "Gateadresse": "Gate 1", "Tlf": 12345678, "Kommentar": "vip"},
                {"Kundenavn": "Kari", "Gateadresse": None, "Tlf": None, "Kommentar": None},
            ],
            header_row_index=0,
            selected_sheet_name="Kunder",
            all_sheets_info=[],
            removed_columns=[],
            skipped_metadata_row_count=0,
            file_hash="0" * 64,
            column_fingerprint="0" * 16,
        )
        mapping = suggest_column_mapping(table.headers)
        records = to_customer_records(table, mapping)

        self.assertEqual(len(records), 2)
        self.assertEqual(records[0].navn, "Ola")
        self.assertEqual(records[0].adresse, "Gate 1")
        self.assertEqual(records[0].telefon, "12345678")
        self.assertEqual(records[0].extra, {"notater": "vip"})
        self.assertIsNone(records[1].adresse)


if __name__ == "__main__":
    unittest.main()
