"""BatchLifecycleManager — orchestration entry point for attendance imports.

Every operation loads the batch fresh from the store. Mutating steps run
under a per-batch lock and write the batch back with a compare-and-swap on
the status they started from.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from typing import Any, Optional

from pydantic import ValidationError

from musterroll.core.config import PipelineConfig
from musterroll.core.exceptions import BatchStateError, InputError, UpstreamError
from musterroll.core.protocols import (
    ICacheBackend,
    IEmployeeDirectory,
    IFileStore,
    IImportBatchStore,
    IOverrideStore,
    IStagedRowStore,
    ISuggestionOracle,
)
from musterroll.core.types import JsonDict
from musterroll.models.batch import BatchStatus, DetectedFormat, ImportBatch, SourceKind
from musterroll.models.mapping import MappingSuggestion
from musterroll.models.staged_row import StagedRow, StageSummary
from musterroll.models.validation import ValidationResult
from musterroll.persistence import Persistence
from musterroll.pipeline import format_detector
from musterroll.pipeline import mapping as column_mapping
from musterroll.pipeline.applier import Applier
from musterroll.pipeline.identity_resolver import IdentityResolver
from musterroll.pipeline.locking import BatchLock
from musterroll.pipeline.stager import Stager
from musterroll.pipeline.validator import Validator

logger = logging.getLogger(__name__)

APPLICABLE = frozenset({BatchStatus.MAPPED, BatchStatus.VALIDATED})


def object_path(batch: ImportBatch, filename: str) -> str:
    """``{org}/{yyyy}-{mm}/{batch_id}/{filename}`` for the uploaded source file."""
    return f"{batch.organization_id}/{batch.period_key}/{batch.id}/{filename}"


def _clean_filename(filename: str) -> str:
    name = posixpath.basename((filename or "").replace("\\", "/")).strip()
    if not name or name in (".", ".."):
        raise InputError("filename required")
    return name


class BatchLifecycleManager:
    """Create → upload → detect → map → stage → validate → apply, or discard."""

    def __init__(
        self,
        batches: IImportBatchStore,
        rows: IStagedRowStore,
        overrides: IOverrideStore,
        directory: IEmployeeDirectory,
        files: IFileStore,
        cache: ICacheBackend,
        oracle: Optional[ISuggestionOracle] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._batches = batches
        self._rows = rows
        self._files = files
        self._oracle = oracle
        self._lock = BatchLock(cache, ttl=self._config.lock_ttl_seconds)
        self._stager = Stager(
            batches, rows, files, IdentityResolver(directory),
            chunk_size=self._config.stage_chunk_size,
        )
        self._validator = Validator(oracle, sample_rows=self._config.oracle_sample_rows)
        self._applier = Applier(overrides)

    @classmethod
    def from_persistence(
        cls,
        persistence: Persistence,
        oracle: Optional[ISuggestionOracle] = None,
        config: Optional[PipelineConfig] = None,
    ) -> BatchLifecycleManager:
        return cls(*persistence, oracle=oracle, config=config)

    # ------------------------------------------------------------------
    # Batch creation and source file
    # ------------------------------------------------------------------

    def create(
        self,
        organization_id: str,
        month: int,
        year: int,
        source: str = SourceKind.EXCEL.value,
        created_by: Optional[str] = None,
    ) -> ImportBatch:
        if not organization_id or not str(organization_id).strip():
            raise InputError("organization_id required")
        try:
            kind = SourceKind(source)
        except ValueError:
            allowed = ", ".join(s.value for s in SourceKind)
            raise InputError(f"source must be one of: {allowed}") from None
        try:
            batch = ImportBatch(
                organization_id=str(organization_id).strip(),
                month=month,
                year=year,
                source=kind,
                created_by=created_by,
            )
        except ValidationError as exc:
            raise InputError(f"Invalid batch period: {exc.errors()[0]['msg']}") from exc

        self._batches.create(batch)
        logger.info(
            "Created batch %s for organization %s period %s",
            batch.id, batch.organization_id, batch.period_key,
        )
        return batch

    def get(self, batch_id: str) -> ImportBatch:
        if not batch_id:
            raise InputError("batch_id required")
        return self._batches.get(batch_id)

    def attach_file(self, batch_id: str, filename: str, data: bytes) -> ImportBatch:
        """Store the source file and point the batch at it; status is unchanged."""
        name = _clean_filename(filename)
        if not data:
            raise InputError("Uploaded file is empty")
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            if batch.status == BatchStatus.APPLIED:
                raise BatchStateError(batch.id, batch.status.value, "upload")

            path = object_path(batch, name)
            content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
            self._files.write(path, data, content_type=content_type)
            if batch.file_url and batch.file_url != path:
                self._delete_object(batch.file_url)

            updated = self._batches.update(
                batch.model_copy(update={"file_url": path}), expected_status=batch.status
            )
            logger.info("Attached %s (%d bytes) to batch %s", path, len(data), batch.id)
            return updated

    def detect(self, batch_id: str) -> DetectedFormat:
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            if not batch.file_url:
                raise InputError(f"Batch {batch.id} has no uploaded file")
            if batch.status == BatchStatus.APPLIED:
                raise BatchStateError(batch.id, batch.status.value, "detect")

            data = self._files.read(batch.file_url)
            detected = format_detector.detect(
                data, posixpath.basename(batch.file_url), sample_rows=self._config.sample_rows
            )
            self._batches.update(
                batch.model_copy(update={"detected_format": detected}),
                expected_status=batch.status,
            )
            logger.info(
                "Detected %s with %d header(s) for batch %s",
                detected.dialect.type, len(detected.headers), batch.id,
            )
            return detected

    # ------------------------------------------------------------------
    # Column mapping
    # ------------------------------------------------------------------

    def suggest_mapping(self, batch_id: str) -> MappingSuggestion:
        batch = self.get(batch_id)
        if batch.detected_format is None or not batch.detected_format.headers:
            raise InputError(f"Batch {batch.id} has no detected format; run detect first")
        fmt = batch.detected_format
        return column_mapping.suggest_mapping(
            fmt.headers, fmt.sample[: self._config.oracle_sample_rows], self._oracle
        )

    def save_mapping(self, batch_id: str, mapping: Any) -> ImportBatch:
        parsed = column_mapping.parse_column_mapping(mapping)
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            updated = batch.transition(BatchStatus.MAPPED).model_copy(
                update={"column_mapping": parsed.as_dict()}
            )
            self._batches.update(updated, expected_status=batch.status)
            logger.info("Saved %d-field mapping on batch %s", len(parsed.fields), batch.id)
            return updated

    # ------------------------------------------------------------------
    # Staging, validation, apply
    # ------------------------------------------------------------------

    def stage(self, batch_id: str) -> StageSummary:
        with self._lock.hold(batch_id):
            return self._stager.stage(self.get(batch_id))

    def validate(self, batch_id: str) -> ValidationResult:
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            if batch.status not in APPLICABLE:
                raise BatchStateError(batch.id, batch.status.value, "validate")
            result = self._validator.validate(batch, self._staged_rows(batch))
            target = BatchStatus.VALIDATED if result.passed else BatchStatus.MAPPED
            self._batches.update(batch.transition(target), expected_status=batch.status)
            logger.info(
                "Validated batch %s: %d error(s), %d warning(s) -> %s",
                batch.id, len(result.errors), len(result.warnings), target.value,
            )
            return result

    def apply(self, batch_id: str, approver_id: Optional[str] = None) -> JsonDict:
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            if batch.status not in APPLICABLE:
                raise BatchStateError(batch.id, batch.status.value, "apply")
            rows = self._staged_rows(batch)
            result = self._validator.validate(batch, rows)
            applied = self._applier.apply(batch, rows, result, approver_id=approver_id)

            done = batch
            if done.status == BatchStatus.MAPPED:
                done = done.transition(BatchStatus.VALIDATED)
            done = done.transition(BatchStatus.APPLIED)
            self._batches.update(done, expected_status=batch.status)
            return {"applied": applied, "warnings": [w.model_dump() for w in result.warnings]}

    def reject(self, batch_id: str) -> ImportBatch:
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            updated = batch.transition(BatchStatus.REJECTED)
            self._batches.update(updated, expected_status=batch.status)
            logger.info("Rejected batch %s", batch.id)
            return updated

    # ------------------------------------------------------------------
    # Read-only views and discard
    # ------------------------------------------------------------------

    def summarize(self, batch_id: str) -> StageSummary:
        batch = self.get(batch_id)
        if not batch.stage_generation:
            return StageSummary()
        return StageSummary.from_rows(self._rows.list_rows(batch.id, batch.stage_generation))

    def latest_for_period(self, organization_id: str, month: int, year: int) -> JsonDict:
        if not organization_id or not month or not year:
            raise InputError("organization_id, month, year required")
        batch = self._batches.latest_for_period(organization_id, month, year)
        if batch is None:
            return {"batch": None, "detect": None, "stage": None}
        return {
            "batch": batch,
            "detect": batch.detected_format,
            "stage": self.summarize(batch.id),
        }

    def discard(self, batch_id: str) -> None:
        with self._lock.hold(batch_id):
            batch = self.get(batch_id)
            if batch.status == BatchStatus.APPLIED:
                raise BatchStateError(batch.id, batch.status.value, "discard")
            self._rows.delete_batch(batch.id)
            prefix = object_path(batch, "")
            try:
                self._files.delete_prefix(prefix)
            except UpstreamError as exc:
                logger.warning("Could not clear objects under %s: %s", prefix, exc)
            self._batches.delete(batch.id)
            logger.info("Discarded batch %s", batch.id)

    # ------------------------------------------------------------------

    def _staged_rows(self, batch: ImportBatch) -> list[StagedRow]:
        if not batch.stage_generation:
            raise InputError(f"Batch {batch.id} has not been staged")
        return self._rows.list_rows(batch.id, batch.stage_generation)

    def _delete_object(self, path: str) -> None:
        try:
            self._files.delete(path)
        except UpstreamError as exc:
            logger.warning("Could not delete object %s: %s", path, exc)
