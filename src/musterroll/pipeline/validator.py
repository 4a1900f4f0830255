"""Validator — hard rules that gate apply, plus advisory oracle warnings."""

from __future__ import annotations

import calendar
import logging
from typing import Optional

from musterroll.core.protocols import ISuggestionOracle
from musterroll.models.batch import ImportBatch
from musterroll.models.staged_row import StagedRow
from musterroll.models.validation import RowIssue, ValidationResult

logger = logging.getLogger(__name__)

NON_NEGATIVE_FIELDS = (
    "payable_days",
    "present_days",
    "lop_days",
    "paid_leaves",
    "ot_hours",
    "late_count",
    "hours",
    "overtime_hours",
    "break_minutes",
)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def check_hard_rules(batch: ImportBatch, rows: list[StagedRow]) -> list[RowIssue]:
    """Every blocking issue across the staged rows, in row order."""
    limit = days_in_month(batch.year, batch.month)
    issues: list[RowIssue] = []
    for row in rows:
        for message in row.validation_errors or []:
            issues.append(RowIssue(row_index=row.row_index, message=message))

        n = row.normalized
        payable = n.payable_days if n.payable_days is not None else n.present_days
        if payable is not None and payable > limit:
            issues.append(RowIssue(
                row_index=row.row_index,
                message=f"Payable days {_fmt(payable)} > days in month {limit}",
            ))

        for field in NON_NEGATIVE_FIELDS:
            value = getattr(n, field)
            if value is not None and value < 0:
                issues.append(RowIssue(row_index=row.row_index, message=f"{field} negative"))
    return issues


class Validator:
    """Computes a ValidationResult; never mutates rows, overrides or the batch."""

    def __init__(self, oracle: Optional[ISuggestionOracle] = None, sample_rows: int = 50) -> None:
        self._oracle = oracle
        self._sample_rows = sample_rows

    def validate(self, batch: ImportBatch, rows: list[StagedRow]) -> ValidationResult:
        return ValidationResult(
            errors=check_hard_rules(batch, rows),
            warnings=self._soft_warnings(batch, rows),
        )

    def _soft_warnings(self, batch: ImportBatch, rows: list[StagedRow]) -> list[RowIssue]:
        if self._oracle is None or not rows:
            return []
        try:
            review = self._oracle.review(batch, rows[: self._sample_rows])
        except Exception as exc:
            logger.warning("Oracle review failed for batch %s: %s", batch.id, exc)
            return []
        # Oracle findings are advisory; its "errors" never block apply.
        return [*review.errors, *review.warnings]
