"""Staged row models: one parsed source row bound to a batch."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Optional

from pydantic import BaseModel, Field

from musterroll.models.mapping import AGGREGATE_FIELDS


class NormalizedFields(BaseModel):
    """Canonical per-row fields derived from the raw source row."""

    date: Optional[dt.date] = None
    check_in: str = ""
    check_out: str = ""
    hours: float = 0.0
    overtime_hours: float = 0.0
    remarks: str = ""
    shift_code: str = ""
    break_minutes: float = 0.0

    # Present only when the source carries monthly aggregate columns
    payable_days: Optional[float] = None
    present_days: Optional[float] = None
    lop_days: Optional[float] = None
    paid_leaves: Optional[float] = None
    ot_hours: Optional[float] = None
    late_count: Optional[float] = None

    @property
    def has_aggregates(self) -> bool:
        return any(getattr(self, f.value) is not None for f in AGGREGATE_FIELDS)


class StagedRow(BaseModel):
    """A staged source row with its normalized fields and derived flags."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    batch_id: str
    row_index: int
    raw: dict[str, str] = Field(default_factory=dict)
    normalized: NormalizedFields = Field(default_factory=NormalizedFields)
    employee_id: Optional[str] = None
    match_confidence: int = 0
    is_duplicate: bool = False
    validation_errors: Optional[list[str]] = None

    @property
    def will_apply(self) -> bool:
        return not self.is_duplicate and not self.validation_errors and self.employee_id is not None


class StageSummary(BaseModel):
    """Aggregate statistics over a batch's current staged row set."""

    total_rows: int = 0
    matched_users: int = 0
    avg_match_confidence: float = 0.0
    duplicates: int = 0
    errors: int = 0
    will_apply_rows: int = 0

    @classmethod
    def from_rows(cls, rows: list[StagedRow]) -> StageSummary:
        total = len(rows)
        if total == 0:
            return cls()
        avg = round(sum(r.match_confidence for r in rows) / total, 2)
        return cls(
            total_rows=total,
            matched_users=sum(1 for r in rows if r.employee_id),
            avg_match_confidence=avg,
            duplicates=sum(1 for r in rows if r.is_duplicate),
            errors=sum(1 for r in rows if r.validation_errors),
            will_apply_rows=sum(1 for r in rows if r.will_apply),
        )
