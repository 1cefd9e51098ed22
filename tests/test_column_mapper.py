from __future__ import annotations

import unittest

from app.errors import ParseError
from app.mappers.column_mapper import ColumnMapper
from app.parsing.csv_source import CSVRowReader, compute_content_hash, load_csv_source, normalize_csv_text
from db.models.import_template import ImportLayout


class TestColumnMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = ColumnMapper()

    def test_resolves_multi_category_headers_with_aliases(self) -> None:
        headers = ["ID", "state", "YEAR", "Category", "Measure Name", "Value", "state_id"]

        resolution = self.mapper.resolve_columns(headers, layout=ImportLayout.MULTI_CATEGORY)

        self.assertEqual(resolution.field_to_header["state"], "state")
        self.assertEqual(resolution.field_to_header["year"], "YEAR")
        self.assertEqual(resolution.field_to_header["measure"], "Measure Name")
        self.assertEqual(resolution.source_headers[0], "ID")

    def test_missing_columns_raise_structured_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            self.mapper.resolve_columns(["State", "Year", "Value"], layout=ImportLayout.MULTI_CATEGORY)

        missing = {error.column for error in ctx.exception.errors if error.code == "missing_column"}
        self.assertEqual(missing, {"Category", "Measure"})

    def test_duplicate_and_ambiguous_columns_are_reported(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            self.mapper.resolve_columns(
                ["State", "Year", "Value", "value", "Statistic", "Measure", "Category"],
                layout=ImportLayout.MULTI_CATEGORY,
            )

        codes = {error.code for error in ctx.exception.errors}
        self.assertIn("duplicate_column", codes)
        self.assertIn("ambiguous_column", codes)

    def test_single_category_layout_needs_three_columns(self) -> None:
        resolution = self.mapper.resolve_columns(["State", "Year", "Value"], layout=ImportLayout.SINGLE_CATEGORY)

        self.assertEqual(set(resolution.field_to_header), {"state", "year", "value"})

    def test_map_row_keeps_every_original_column(self) -> None:
        resolution = self.mapper.resolve_columns(
            ["State", "Year", "Value", "Notes"],
            layout=ImportLayout.SINGLE_CATEGORY,
        )

        row = self.mapper.map_row(
            raw_row={"State": "Texas", "Year": "2023", "Value": "12", "Notes": None},
            row_number=2,
            resolution=resolution,
        )

        self.assertEqual(row.state, "Texas")
        self.assertIsNone(row.category)
        self.assertEqual(list(row.raw_fields), ["State", "Year", "Value", "Notes"])
        self.assertEqual(row.raw_fields["Notes"], "")


class TestCSVSource(unittest.TestCase):
    def test_hash_ignores_bom_line_endings_and_blank_lines(self) -> None:
        plain = load_csv_source(b"State,Year,Value\nTexas,2023,1\n")
        variant = load_csv_source(b"\xef\xbb\xbfState,Year,Value\r\n\r\nTexas,2023,1\r\n\r\n")

        self.assertEqual(plain.content_hash, variant.content_hash)
        self.assertEqual(plain.content_hash, compute_content_hash("State,Year,Value\nTexas,2023,1"))

    def test_empty_or_undecodable_content_raises_parse_error(self) -> None:
        with self.assertRaises(ParseError):
            load_csv_source(b"\n\n  \n")
        with self.assertRaises(ParseError):
            load_csv_source(b"\xff\xfe\x00bad")

    def test_row_reader_numbers_rows_from_two(self) -> None:
        reader = CSVRowReader(normalize_csv_text("State,Year,Value\nTexas,2023,1\nOhio,2023,2\n"))

        self.assertEqual(reader.headers, ["State", "Year", "Value"])
        self.assertEqual([number for number, _ in reader], [2, 3])

    def test_quoted_values_with_commas(self) -> None:
        reader = CSVRowReader('State,Year,Value\nTexas,2023,"1,234"')

        rows = list(reader)

        self.assertEqual(rows[0][1]["Value"], "1,234")

    def test_row_numbers_follow_file_lines_across_blank_lines(self) -> None:
        reader = CSVRowReader("State,Year,Value\n\nTexas,2023,1\n   \n\nOhio,2023,N/A\n")

        self.assertEqual([number for number, _ in reader], [3, 6])

    def test_multiline_cell_keeps_blank_line_and_reports_start_line(self) -> None:
        reader = CSVRowReader('State,Year,Value,Notes\r\nTexas,2023,1,"first\r\n\r\nthird"\r\nOhio,2023,2,\r\n')

        rows = list(reader)

        self.assertEqual([number for number, _ in rows], [2, 5])
        self.assertEqual(rows[0][1]["Notes"], "first\r\n\r\nthird")

    def test_leading_blank_lines_before_header_are_counted(self) -> None:
        reader = CSVRowReader("\n  \nState,Year,Value\nTexas,2023,1\n")

        self.assertEqual(reader.headers, ["State", "Year", "Value"])
        self.assertEqual([number for number, _ in reader], [4])

    def test_source_text_is_kept_as_decoded(self) -> None:
        source = load_csv_source(b"\xef\xbb\xbfState,Year,Value\r\n\r\nTexas,2023,1\r\n")

        self.assertEqual(source.text, "State,Year,Value\r\n\r\nTexas,2023,1\r\n")
        self.assertEqual([number for number, _ in CSVRowReader(source.text)], [3])
