"""Stager — turns a mapped source file into a complete staged row set."""

from __future__ import annotations

import logging
import uuid

from musterroll.core.exceptions import BatchStateError, InputError, UpstreamError
from musterroll.core.protocols import IFileStore, IImportBatchStore, IStagedRowStore
from musterroll.core.types import Grid
from musterroll.models.batch import BatchStatus, ImportBatch
from musterroll.models.mapping import ColumnMapping
from musterroll.models.staged_row import StagedRow, StageSummary
from musterroll.pipeline.format_detector import normalize_headers, read_grid
from musterroll.pipeline.identity_resolver import IdentityResolver
from musterroll.pipeline.mapping import parse_column_mapping
from musterroll.pipeline.normalizer import (
    NO_ACTIVITY,
    NO_REFERENCE,
    USER_NOT_RESOLVED,
    HeaderIndex,
    normalize_row,
)

logger = logging.getLogger(__name__)

STAGEABLE = frozenset({BatchStatus.MAPPED, BatchStatus.VALIDATED})


def check_stageable(batch: ImportBatch) -> ColumnMapping:
    """Raise unless the batch has everything staging needs; return its mapping."""
    if not batch.file_url:
        raise InputError(f"Batch {batch.id} has no uploaded file")
    if batch.detected_format is None or not batch.detected_format.headers:
        raise InputError(f"Batch {batch.id} has no detected format; run detect first")
    if not batch.column_mapping:
        raise InputError(f"Batch {batch.id} has no column mapping; save a mapping first")
    if batch.status not in STAGEABLE:
        raise BatchStateError(batch.id, batch.status.value, "stage")
    return parse_column_mapping(batch.column_mapping)


class Stager:
    """Parses, normalizes, resolves and stages every data row of a batch."""

    def __init__(
        self,
        batches: IImportBatchStore,
        rows: IStagedRowStore,
        files: IFileStore,
        resolver: IdentityResolver,
        chunk_size: int = 1000,
    ) -> None:
        self._batches = batches
        self._rows = rows
        self._files = files
        self._resolver = resolver
        self._chunk_size = max(1, chunk_size)

    def build_rows(self, batch: ImportBatch, grid: Grid, mapping: ColumnMapping) -> list[StagedRow]:
        """Normalize data rows, resolve identities in one bulk call, flag duplicates."""
        index = HeaderIndex(normalize_headers(grid[0]), mapping)
        normalized = [normalize_row(line, index) for line in grid[1:]]
        resolutions = self._resolver.resolve_many(
            batch.organization_id, [n.reference for n in normalized if n.reference]
        )

        seen: set[tuple[str, str]] = set()
        staged: list[StagedRow] = []
        for i, n in enumerate(normalized):
            errors = list(n.field_errors)
            employee_id = None
            confidence = 0
            if not n.reference:
                errors.append(NO_REFERENCE)
            else:
                res = resolutions.get(n.reference.strip())
                if res is None or not res.resolved:
                    errors.append(USER_NOT_RESOLVED)
                else:
                    employee_id = res.employee_id
                    confidence = res.confidence

            is_duplicate = False
            if employee_id is not None:
                day = n.normalized.date.isoformat() if n.normalized.date else ""
                if day or n.normalized.has_aggregates:
                    key = (employee_id, day)
                    is_duplicate = key in seen
                    seen.add(key)

            if n.lacks_activity:
                errors.append(NO_ACTIVITY)

            staged.append(StagedRow(
                batch_id=batch.id,
                row_index=i,
                raw=n.raw,
                normalized=n.normalized,
                employee_id=employee_id,
                match_confidence=confidence,
                is_duplicate=is_duplicate,
                validation_errors=errors or None,
            ))
        return staged

    def stage(self, batch: ImportBatch) -> StageSummary:
        """Replace the batch's staged rows; status becomes validated or mapped."""
        mapping = check_stageable(batch)
        grid = read_grid(self._files.read(batch.file_url), batch.detected_format.dialect)
        if len(grid) < 2:
            raise InputError("No data rows found")

        rows = self.build_rows(batch, grid, mapping)
        generation = uuid.uuid4().hex
        self._write_generation(batch.id, generation, rows)

        summary = StageSummary.from_rows(rows)
        target = BatchStatus.VALIDATED if summary.errors == 0 else BatchStatus.MAPPED
        previous = batch.stage_generation
        updated = batch.transition(target).model_copy(update={"stage_generation": generation})
        try:
            self._batches.update(updated, expected_status=batch.status)
        except Exception:
            self._discard_generation(batch.id, generation)
            raise

        if previous and previous != generation:
            self._discard_generation(batch.id, previous)

        logger.info(
            "Staged batch %s: %d rows, %d errors, %d duplicates -> %s",
            batch.id, summary.total_rows, summary.errors, summary.duplicates, target.value,
        )
        return summary

    def _write_generation(self, batch_id: str, generation: str, rows: list[StagedRow]) -> None:
        try:
            for start in range(0, len(rows), self._chunk_size):
                self._rows.put_rows(batch_id, generation, rows[start:start + self._chunk_size])
        except UpstreamError:
            self._discard_generation(batch_id, generation)
            raise
        except Exception as exc:
            self._discard_generation(batch_id, generation)
            raise UpstreamError(f"Writing staged rows for batch {batch_id} failed: {exc}") from exc

    def _discard_generation(self, batch_id: str, generation: str) -> None:
        try:
            self._rows.delete_generation(batch_id, generation)
        except UpstreamError as exc:
            logger.warning(
                "Could not delete staged generation %s of batch %s: %s", generation, batch_id, exc
            )
