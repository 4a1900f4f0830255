"""Format detection: sniffs delimiter or sheet, header row and sample rows.

Detection never raises. Anything that cannot be read as a workbook is split
as delimited text, and an empty file yields empty headers and sample.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from datetime import date, datetime, time

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from musterroll.core.types import Grid
from musterroll.models.batch import DetectedFormat, Dialect

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = (".xlsx", ".xlsm", ".xls")
TEXT_EXTENSIONS = (".csv", ".txt", ".tsv")
ALT_DELIMITERS = (";", "\t", "|")
_ZIP_MAGIC = b"PK\x03\x04"


def detect(data: bytes, filename: str, sample_rows: int = 8) -> DetectedFormat:
    """Read the first rows of ``data`` and describe its structure."""
    grid, dialect = _read_any(data, filename)
    if not grid:
        return DetectedFormat(dialect=dialect)
    return DetectedFormat(
        headers=normalize_headers(grid[0]),
        sample=grid[1:1 + sample_rows],
        dialect=dialect,
    )


def read_grid(data: bytes, dialect: Dialect) -> Grid:
    """Read the full grid (header row included) the same way ``detect`` did."""
    if dialect.type == "xlsx":
        try:
            return _read_workbook(data)[1]
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            logger.warning("Workbook re-read failed, falling back to CSV split: %s", exc)
    text = _decode(data)
    return _read_delimited(text, dialect.delimiter or _sniff_delimiter(text))


def normalize_headers(row: list[str]) -> list[str]:
    """Trim header cells; blank headers get a positional name."""
    return [str(h).strip() or f"column_{i + 1}" for i, h in enumerate(row)]


def _read_any(data: bytes, filename: str) -> tuple[Grid, Dialect]:
    name = (filename or "").lower()
    if name.endswith(WORKBOOK_EXTENSIONS) or data.startswith(_ZIP_MAGIC):
        try:
            sheet, grid = _read_workbook(data)
            return grid, Dialect(type="xlsx", sheet=sheet)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            logger.warning("%s is not a readable workbook (%s); trying CSV split", filename, exc)
            text = _decode(data)
            delimiter = _sniff_delimiter(text)
            return _read_delimited(text, delimiter), Dialect(type="csv-unknown", delimiter=delimiter)

    text = _decode(data)
    delimiter = _sniff_delimiter(text)
    kind = "csv" if name.endswith(TEXT_EXTENSIONS) else "csv-unknown"
    return _read_delimited(text, delimiter), Dialect(type=kind, delimiter=delimiter)


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _sniff_delimiter(text: str) -> str:
    first = next((line for line in text.splitlines() if line.strip()), "")
    if "," in first:
        return ","
    for candidate in ALT_DELIMITERS:
        if candidate in first:
            return candidate
    return ","


def _read_delimited(text: str, delimiter: str) -> Grid:
    # Blank lines are not data rows. Unbalanced quotes are tolerated.
    lines = [line for line in text.splitlines() if line.strip()]
    return [list(row) for row in csv.reader(lines, delimiter=delimiter, strict=False)]


def _read_workbook(data: bytes) -> tuple[str, Grid]:
    wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.worksheets[0]
        grid: Grid = []
        for values in ws.iter_rows(values_only=True):
            cells = [_cell_text(v) for v in values]
            while cells and cells[-1] == "":
                cells.pop()
            if any(c.strip() for c in cells):
                grid.append(cells)
        return ws.title, grid
    finally:
        wb.close()


def _cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return f"{value.date().isoformat()} {value.strftime('%H:%M')}"
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
