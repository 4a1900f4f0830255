"""Applier — writes one monthly override per clean, resolved employee."""

from __future__ import annotations

import logging
from typing import Optional

from musterroll.core.exceptions import ValidationFailedError
from musterroll.core.protocols import IOverrideStore
from musterroll.models.batch import ImportBatch, utcnow
from musterroll.models.override import MonthlyOverride, OverridePayload
from musterroll.models.staged_row import StagedRow
from musterroll.models.validation import ValidationResult

logger = logging.getLogger(__name__)


def _payload_from_aggregate(row: StagedRow) -> OverridePayload:
    n = row.normalized
    payable = n.payable_days if n.payable_days is not None else n.present_days
    return OverridePayload(
        payable_days=payable or 0.0,
        lop_days=n.lop_days or 0.0,
        paid_leaves=n.paid_leaves or 0.0,
        ot_hours=n.ot_hours or 0.0,
        late_count=n.late_count or 0.0,
        remarks=n.remarks or None,
    )


def _payload_from_daily(rows: list[StagedRow]) -> OverridePayload:
    days = {r.normalized.date for r in rows if r.normalized.date is not None}
    remarks: Optional[str] = None
    for r in rows:
        if r.normalized.remarks:
            remarks = r.normalized.remarks
    return OverridePayload(
        payable_days=float(len(days)),
        ot_hours=round(sum(r.normalized.overtime_hours for r in rows), 2),
        remarks=remarks,
    )


def build_payloads(rows: list[StagedRow]) -> dict[str, OverridePayload]:
    """Group clean rows by employee (row order) and compute each payload."""
    grouped: dict[str, list[StagedRow]] = {}
    for row in sorted(rows, key=lambda r: r.row_index):
        if row.will_apply:
            grouped.setdefault(row.employee_id, []).append(row)

    payloads: dict[str, OverridePayload] = {}
    for employee_id, group in grouped.items():
        aggregates = [r for r in group if r.normalized.has_aggregates]
        if aggregates:
            payloads[employee_id] = _payload_from_aggregate(aggregates[-1])
        else:
            payloads[employee_id] = _payload_from_daily(group)
    return payloads


class Applier:
    """Upserts overrides keyed on (organization, employee, month, year)."""

    def __init__(self, overrides: IOverrideStore) -> None:
        self._overrides = overrides

    def apply(
        self,
        batch: ImportBatch,
        rows: list[StagedRow],
        result: ValidationResult,
        approver_id: Optional[str] = None,
    ) -> int:
        """Write overrides and return how many; nothing is written on hard errors.

        The whole set goes to the store in one ``upsert_many`` call. If the
        store fails the batch status is left alone; overrides are full
        replacements, so applying the batch again converges.
        """
        if not result.passed:
            raise ValidationFailedError(batch.id, [e.model_dump() for e in result.errors])

        approved_at = utcnow()
        overrides = [
            MonthlyOverride(
                organization_id=batch.organization_id,
                employee_id=employee_id,
                month=batch.month,
                year=batch.year,
                source_batch_id=batch.id,
                payload=payload,
                approved_by=approver_id,
                approved_at=approved_at,
            )
            for employee_id, payload in build_payloads(rows).items()
        ]
        if overrides:
            self._overrides.upsert_many(overrides)
        logger.info("Applied batch %s: %d override(s) written", batch.id, len(overrides))
        return len(overrides)
