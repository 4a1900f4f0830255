"""Shared test doubles: re-export memory backends."""

from __future__ import annotations

from musterroll.core.exceptions import UpstreamError
from musterroll.models.override import MonthlyOverride
from musterroll.models.staged_row import StagedRow
from musterroll.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryEmployeeDirectory,
    MemoryFileStore,
    MemoryImportBatchStore,
    MemoryOverrideStore,
    MemoryStagedRowStore,
)


class FailingStagedRowStore(MemoryStagedRowStore):
    """Accepts ``fail_after`` chunks, then raises UpstreamError on every put."""

    def __init__(self, fail_after: int = 1) -> None:
        super().__init__()
        self.fail_after = fail_after
        self.puts = 0

    def put_rows(self, batch_id: str, generation: str, rows: list[StagedRow]) -> None:
        if self.puts >= self.fail_after:
            raise UpstreamError("simulated write failure")
        self.puts += 1
        super().put_rows(batch_id, generation, rows)


class FailingOverrideStore(MemoryOverrideStore):
    """Raises UpstreamError on ``upsert_many`` while ``failing`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = True
        self.calls = 0

    def upsert_many(self, overrides: list[MonthlyOverride]) -> None:
        self.calls += 1
        if self.failing:
            raise UpstreamError("simulated override write failure")
        super().upsert_many(overrides)


__all__ = [
    "FailingOverrideStore",
    "FailingStagedRowStore",
    "MemoryCacheBackend",
    "MemoryEmployeeDirectory",
    "MemoryFileStore",
    "MemoryImportBatchStore",
    "MemoryOverrideStore",
    "MemoryStagedRowStore",
]
