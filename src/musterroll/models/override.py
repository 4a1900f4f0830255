"""Monthly override: the payroll-facing artifact written by apply."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OverridePayload(BaseModel):
    """Attendance aggregate the payroll engine reads for one employee-month."""

    payable_days: float = 0.0
    lop_days: float = 0.0
    paid_leaves: float = 0.0
    ot_hours: float = 0.0
    late_count: float = 0.0
    remarks: Optional[str] = None


class MonthlyOverride(BaseModel):
    """Unique per (organization_id, employee_id, month, year)."""

    organization_id: str
    employee_id: str
    month: int
    year: int
    source_batch_id: str
    payload: OverridePayload
    approved_by: Optional[str] = None
    approved_at: datetime

    @property
    def key(self) -> tuple[str, str, int, int]:
        return (self.organization_id, self.employee_id, self.month, self.year)
