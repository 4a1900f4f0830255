"""MusterRoll exception hierarchy."""

from __future__ import annotations

from typing import Any


class MusterRollError(Exception):
    """Base exception for all MusterRoll errors."""


class InputError(MusterRollError):
    """Missing or malformed input. Nothing was mutated."""


class BatchStateError(InputError):
    """Requested transition or operation is not legal for the batch's status."""

    def __init__(self, batch_id: str, current: str, target: str) -> None:
        self.batch_id = batch_id
        self.current = current
        self.target = target
        super().__init__(f"Batch {batch_id} in status {current!r} does not allow {target!r}")


class NotFoundError(MusterRollError):
    """Referenced batch, employee or organization does not exist."""


class ValidationFailedError(MusterRollError):
    """Hard validation rules failed; apply is blocked."""

    def __init__(self, batch_id: str, errors: list[Any]) -> None:
        self.batch_id = batch_id
        self.errors = errors
        super().__init__(
            f"Resolve validation errors before apply ({len(errors)} error(s) on batch {batch_id})"
        )


class BatchBusyError(MusterRollError):
    """Another stage/apply/discard is already running for this batch."""

    def __init__(self, batch_id: str) -> None:
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} is busy with another operation")


class StaleBatchError(BatchBusyError):
    """Conditional batch write lost a race with a concurrent writer."""


class UpstreamError(MusterRollError):
    """File store, directory or database failure."""


class StorageError(UpstreamError):
    """Object store operation failed."""


class CacheError(UpstreamError):
    """Redis cache operation failed."""


class OracleError(MusterRollError):
    """Suggestion oracle call failed or returned unusable output."""
