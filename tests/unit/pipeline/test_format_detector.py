"""Tests for format detection over CSV, delimited text and workbooks."""

from __future__ import annotations

import io
from datetime import date, datetime, time

import openpyxl
import pytest

from musterroll.models.batch import Dialect
from musterroll.pipeline.format_detector import detect, normalize_headers, read_grid


def _xlsx(rows: list[list]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "March"
    for r in rows:
        ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


class TestDelimited:
    def test_comma_csv(self):
        fmt = detect(b"code,date,hours\nE1,2025-03-01,8\n", "a.csv")
        assert fmt.headers == ["code", "date", "hours"]
        assert fmt.sample == [["E1", "2025-03-01", "8"]]
        assert fmt.dialect.type == "csv"
        assert fmt.dialect.delimiter == ","

    @pytest.mark.parametrize("delim", [";", "\t", "|"])
    def test_alternate_delimiters(self, delim):
        text = f"code{delim}date\nE1{delim}2025-03-01\n".encode()
        fmt = detect(text, "a.txt")
        assert fmt.headers == ["code", "date"]
        assert fmt.dialect.delimiter == delim

    def test_sample_limited(self):
        body = "h\n" + "\n".join(str(i) for i in range(20))
        fmt = detect(body.encode(), "a.csv", sample_rows=8)
        assert len(fmt.sample) == 8

    def test_blank_lines_skipped_and_bom_stripped(self):
        fmt = detect(b"\xef\xbb\xbfcode,hours\n\nE1,8\n   \nE2,9\n", "a.csv")
        assert fmt.headers == ["code", "hours"]
        assert fmt.sample == [["E1", "8"], ["E2", "9"]]

    def test_unbalanced_quotes_tolerated(self):
        fmt = detect(b'code,remarks\nE1,"half day\n', "a.csv")
        assert fmt.headers == ["code", "remarks"]
        assert fmt.sample

    def test_blank_header_gets_positional_name(self):
        assert normalize_headers(["code", " ", "date"]) == ["code", "column_2", "date"]

    def test_empty_file(self):
        fmt = detect(b"", "empty.csv")
        assert fmt.headers == []
        assert fmt.sample == []

    def test_unknown_extension(self):
        assert detect(b"a,b\n1,2\n", "dump.dat").dialect.type == "csv-unknown"

    def test_undecodable_bytes_do_not_raise(self):
        fmt = detect(b"code,name\nE1,\xff\xfe\n", "a.csv")
        assert fmt.headers == ["code", "name"]


class TestWorkbook:
    def test_reads_first_sheet_and_stringifies_cells(self):
        data = _xlsx([
            ["Emp Code", "Date", "In", "Hours", "Stamp"],
            ["E001", date(2025, 3, 1), time(9, 30), 8.0, datetime(2025, 3, 1, 17, 45)],
            [None, None, None, None, None],
            ["E002", datetime(2025, 3, 2), None, 7.5],
        ])
        fmt = detect(data, "march.xlsx")
        assert fmt.dialect.type == "xlsx"
        assert fmt.dialect.sheet == "March"
        assert fmt.headers == ["Emp Code", "Date", "In", "Hours", "Stamp"]
        assert fmt.sample[0] == ["E001", "2025-03-01", "09:30", "8", "2025-03-01 17:45"]
        assert fmt.sample[1] == ["E002", "2025-03-02", "", "7.5"]

    def test_read_grid_matches_detection(self):
        data = _xlsx([["code", "hours"], ["E1", 8], ["E2", 9]])
        fmt = detect(data, "x.xlsx")
        assert read_grid(data, fmt.dialect) == [["code", "hours"], ["E1", "8"], ["E2", "9"]]

    def test_corrupt_workbook_falls_back_to_csv(self):
        fmt = detect(b"code,hours\nE1,8\n", "fake.xlsx")
        assert fmt.dialect.type == "csv-unknown"
        assert fmt.headers == ["code", "hours"]

    def test_zip_magic_without_extension(self):
        data = _xlsx([["code"], ["E1"]])
        assert detect(data, "upload").dialect.type == "xlsx"


class TestReadGrid:
    def test_uses_recorded_delimiter(self):
        grid = read_grid(b"a;b\n1;2\n", Dialect(type="csv", delimiter=";"))
        assert grid == [["a", "b"], ["1", "2"]]
