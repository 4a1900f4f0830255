"""Canonical attendance fields and column-mapping models."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class CanonicalField(StrEnum):
    # Identity references
    USER_ID = "user_id"
    EMPLOYEE_CODE = "employee_code"

    # Daily attendance
    DATE = "date"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    HOURS = "hours"
    OVERTIME_HOURS = "overtime_hours"
    REMARKS = "remarks"
    SHIFT_CODE = "shift_code"
    BREAK_MINUTES = "break_minutes"

    # Monthly aggregates (summary-style exports)
    PAYABLE_DAYS = "payable_days"
    PRESENT_DAYS = "present_days"
    LOP_DAYS = "lop_days"
    PAID_LEAVES = "paid_leaves"
    OT_HOURS = "ot_hours"
    LATE_COUNT = "late_count"


AGGREGATE_FIELDS: tuple[CanonicalField, ...] = (
    CanonicalField.PAYABLE_DAYS,
    CanonicalField.PRESENT_DAYS,
    CanonicalField.LOP_DAYS,
    CanonicalField.PAID_LEAVES,
    CanonicalField.OT_HOURS,
    CanonicalField.LATE_COUNT,
)

# Header spellings seen in vendor and biometric exports, matched after
# lower-casing and collapsing punctuation to underscores.
HEADER_SYNONYMS: dict[CanonicalField, tuple[str, ...]] = {
    CanonicalField.USER_ID: ("user_id", "userid", "uid", "internal_id"),
    CanonicalField.EMPLOYEE_CODE: (
        "employee_code", "emp_code", "empcode", "employee_id", "emp_id", "emp_no",
        "employee_no", "staff_id", "code", "badge", "badge_no", "enroll_no",
    ),
    CanonicalField.DATE: ("date", "attendance_date", "work_date", "day", "punch_date"),
    CanonicalField.CHECK_IN: ("check_in", "checkin", "in_time", "in", "time_in", "clock_in", "first_punch"),
    CanonicalField.CHECK_OUT: ("check_out", "checkout", "out_time", "out", "time_out", "clock_out", "last_punch"),
    CanonicalField.HOURS: ("hours", "work_hours", "worked_hours", "total_hours", "duration"),
    CanonicalField.OVERTIME_HOURS: ("overtime_hours", "overtime", "ot", "extra_hours"),
    CanonicalField.REMARKS: ("remarks", "remark", "notes", "note", "comments", "status"),
    CanonicalField.SHIFT_CODE: ("shift_code", "shift", "shift_name"),
    CanonicalField.BREAK_MINUTES: ("break_minutes", "break", "break_mins", "break_time"),
    CanonicalField.PAYABLE_DAYS: ("payable_days", "paid_days", "payable"),
    CanonicalField.PRESENT_DAYS: ("present_days", "present", "days_present", "days_worked"),
    CanonicalField.LOP_DAYS: ("lop_days", "lop", "loss_of_pay", "unpaid_days", "absent_days"),
    CanonicalField.PAID_LEAVES: ("paid_leaves", "paid_leave", "leaves", "leave_days"),
    CanonicalField.OT_HOURS: ("ot_hours", "total_ot", "ot_total"),
    CanonicalField.LATE_COUNT: ("late_count", "lates", "late_marks", "late"),
}


class ColumnMapping(BaseModel):
    """Canonical field -> source header, as confirmed by the operator."""

    fields: dict[CanonicalField, str] = Field(default_factory=dict)

    def header_for(self, field: CanonicalField) -> str | None:
        header = self.fields.get(field)
        return header.strip() if header and header.strip() else None

    def as_dict(self) -> dict[str, str]:
        return {k.value: v for k, v in self.fields.items()}


class MappingSuggestion(BaseModel):
    """Proposed mapping; advisory until saved through ``save_mapping``."""

    column_mapping: dict[str, str] = Field(default_factory=dict)
    confidence: dict[str, float] = Field(default_factory=dict)
    source: Literal["heuristic", "oracle"] = "heuristic"
    unmapped_headers: list[str] = Field(default_factory=list)
