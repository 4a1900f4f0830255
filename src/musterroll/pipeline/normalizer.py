"""Row normalization: header lookup, date and number parsing."""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import NamedTuple, Optional

from musterroll.models.mapping import AGGREGATE_FIELDS, CanonicalField, ColumnMapping
from musterroll.models.staged_row import NormalizedFields

INVALID_DATE = "Invalid/missing date"
NO_REFERENCE = "No employee code or user id"
USER_NOT_RESOLVED = "User not resolved"
NO_ACTIVITY = "Neither check-in nor hours available"

EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 59
EXCEL_SERIAL_MAX = 60000

_ISO_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_SLASHED_RE = re.compile(r"^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{4}|\d{2})$")
_CLOCK_RE = re.compile(r"^\s*(\d{1,3}):([0-5]\d)(?::[0-5]\d)?\s*$")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_BLANK_NUMBERS = {"", "-", ".", "-."}


def _calendar_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date(value: str | None) -> Optional[date]:
    """Parse a source date cell, or return None.

    Accepts ISO ``YYYY-MM-DD`` (optionally followed by a time), ``D/M/YYYY``
    and ``D-M-YYYY`` read day-first with a month-first fallback, ``M/D/YY``
    read month-first with a day-first fallback, and Excel serial numbers.
    """
    s = (value or "").strip()
    if not s:
        return None

    m = _ISO_RE.match(s)
    if m:
        return _calendar_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = _SLASHED_RE.match(s)
    if m:
        first, second, year_text = int(m.group(1)), int(m.group(2)), m.group(3)
        if len(year_text) == 4:
            year = int(year_text)
            return _calendar_date(year, second, first) or _calendar_date(year, first, second)
        year = 2000 + int(year_text)
        return _calendar_date(year, first, second) or _calendar_date(year, second, first)

    try:
        serial = float(s)
    except ValueError:
        return None
    if EXCEL_SERIAL_MIN < serial < EXCEL_SERIAL_MAX:
        return EXCEL_EPOCH + timedelta(days=int(serial))
    return None


def parse_number(value: str | None) -> Optional[float]:
    """Strip non-numeric characters and parse; None when nothing is left.

    Raises ValueError when the remainder is not a number (e.g. ``1.2.3``).
    """
    cleaned = _NON_NUMERIC.sub("", value or "")
    if cleaned in _BLANK_NUMBERS:
        return None
    return float(cleaned)


def parse_hours(value: str | None) -> Optional[float]:
    """Hours as a decimal; ``H:MM`` clock durations are converted."""
    m = _CLOCK_RE.match(value or "")
    if m:
        return round(int(m.group(1)) + int(m.group(2)) / 60, 2)
    return parse_number(value)


def parse_minutes(value: str | None) -> Optional[float]:
    """Minutes; ``H:MM`` clock durations are converted."""
    m = _CLOCK_RE.match(value or "")
    if m:
        return float(int(m.group(1)) * 60 + int(m.group(2)))
    return parse_number(value)


class HeaderIndex:
    """Resolves mapped header names to column positions."""

    def __init__(self, headers: list[str], mapping: ColumnMapping) -> None:
        self.headers = [str(h).strip() for h in headers]
        self._positions: dict[CanonicalField, int] = {}
        for field in CanonicalField:
            pos = self._find(mapping.header_for(field))
            if pos >= 0:
                self._positions[field] = pos

    def _find(self, name: str | None) -> int:
        if not name:
            return -1
        if name in self.headers:
            return self.headers.index(name)
        folded = name.lower()
        for i, h in enumerate(self.headers):
            if h.lower() == folded:
                return i
        return -1

    def has(self, field: CanonicalField) -> bool:
        return field in self._positions

    def cell(self, line: list[str], field: CanonicalField) -> str:
        pos = self._positions.get(field, -1)
        if pos < 0 or pos >= len(line):
            return ""
        return str(line[pos] or "").strip()

    def raw(self, line: list[str]) -> dict[str, str]:
        """Header -> original cell text, verbatim, padded for short rows."""
        return {h: (line[j] if j < len(line) else "") for j, h in enumerate(self.headers)}


class NormalizedRow(NamedTuple):
    raw: dict[str, str]
    normalized: NormalizedFields
    reference: Optional[str]
    field_errors: list[str]
    lacks_activity: bool


def normalize_row(line: list[str], index: HeaderIndex) -> NormalizedRow:
    """Normalize one source line; identity is resolved later in bulk.

    Rows carrying monthly aggregate values are summary rows: they may omit
    the date and need no check-in or hours.
    """
    errors: list[str] = []

    date_text = index.cell(line, CanonicalField.DATE)
    parsed_date = parse_date(date_text)

    numbers: dict[str, Optional[float]] = {}
    parsers = {
        CanonicalField.HOURS: parse_hours,
        CanonicalField.OVERTIME_HOURS: parse_hours,
        CanonicalField.BREAK_MINUTES: parse_minutes,
    }
    for field in (*parsers, *AGGREGATE_FIELDS):
        parse = parsers.get(field, parse_number)
        text = index.cell(line, field)
        try:
            numbers[field.value] = parse(text)
        except ValueError:
            numbers[field.value] = None
            errors.append(f"Invalid number for {field.value}")

    summary = any(numbers[f.value] is not None for f in AGGREGATE_FIELDS)
    if parsed_date is None and (date_text or not summary):
        errors.insert(0, INVALID_DATE)

    check_in = index.cell(line, CanonicalField.CHECK_IN)
    hours = numbers.pop(CanonicalField.HOURS.value) or 0.0
    normalized = NormalizedFields(
        date=parsed_date,
        check_in=check_in,
        check_out=index.cell(line, CanonicalField.CHECK_OUT),
        hours=hours,
        overtime_hours=numbers.pop(CanonicalField.OVERTIME_HOURS.value) or 0.0,
        remarks=index.cell(line, CanonicalField.REMARKS),
        shift_code=index.cell(line, CanonicalField.SHIFT_CODE),
        break_minutes=numbers.pop(CanonicalField.BREAK_MINUTES.value) or 0.0,
        **numbers,
    )

    reference = (
        index.cell(line, CanonicalField.USER_ID)
        or index.cell(line, CanonicalField.EMPLOYEE_CODE)
        or None
    )

    return NormalizedRow(
        raw=index.raw(line),
        normalized=normalized,
        reference=reference,
        field_errors=errors,
        lacks_activity=not summary and not check_in and not hours,
    )
