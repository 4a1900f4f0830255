"""Import batch model and its status state machine."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from musterroll.core.exceptions import BatchStateError


class BatchStatus(StrEnum):
    UPLOADED = "uploaded"
    MAPPED = "mapped"
    VALIDATED = "validated"
    APPLIED = "applied"
    REJECTED = "rejected"


class SourceKind(StrEnum):
    EXCEL = "excel"
    CSV = "csv"
    BIOMETRIC = "biometric"


# Forward-only, except re-mapping so a caller can correct and re-stage.
ALLOWED_TRANSITIONS: dict[BatchStatus, frozenset[BatchStatus]] = {
    BatchStatus.UPLOADED: frozenset({BatchStatus.MAPPED, BatchStatus.REJECTED}),
    BatchStatus.MAPPED: frozenset(
        {BatchStatus.MAPPED, BatchStatus.VALIDATED, BatchStatus.REJECTED}
    ),
    BatchStatus.VALIDATED: frozenset(
        {BatchStatus.MAPPED, BatchStatus.VALIDATED, BatchStatus.APPLIED, BatchStatus.REJECTED}
    ),
    BatchStatus.REJECTED: frozenset({BatchStatus.MAPPED}),
    BatchStatus.APPLIED: frozenset(),
}


def check_transition(batch_id: str, current: BatchStatus, target: BatchStatus) -> None:
    """Raise BatchStateError unless ``current -> target`` is a legal move."""
    if target not in ALLOWED_TRANSITIONS[current]:
        raise BatchStateError(batch_id, current.value, target.value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Dialect(BaseModel):
    """How the source grid was read."""

    type: str = "csv"  # csv, xlsx, csv-unknown
    delimiter: Optional[str] = None
    sheet: Optional[str] = None


class DetectedFormat(BaseModel):
    """Result of format detection, persisted on the batch for later steps."""

    headers: list[str] = Field(default_factory=list)
    sample: list[list[str]] = Field(default_factory=list)
    dialect: Dialect = Field(default_factory=Dialect)


class ImportBatch(BaseModel):
    """One import attempt for (organization, month, year)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    organization_id: str
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    source: SourceKind = SourceKind.EXCEL
    file_url: Optional[str] = None
    detected_format: Optional[DetectedFormat] = None
    column_mapping: Optional[dict[str, str]] = None
    status: BatchStatus = BatchStatus.UPLOADED
    stage_generation: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    created_by: Optional[str] = None

    @property
    def period_key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    def transition(self, target: BatchStatus) -> ImportBatch:
        """Return a copy moved to ``target``; raises on an illegal move."""
        check_transition(self.id, self.status, target)
        return self.model_copy(update={"status": target, "updated_at": utcnow()})
