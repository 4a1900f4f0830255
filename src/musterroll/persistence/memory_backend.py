"""In-memory backends for unit tests: dict-backed fakes."""

from __future__ import annotations

import threading
from typing import Iterable, Optional

from musterroll.core.exceptions import NotFoundError, StaleBatchError, StorageError
from musterroll.models.batch import BatchStatus, ImportBatch
from musterroll.models.employee import EmployeeRecord
from musterroll.models.override import MonthlyOverride
from musterroll.models.staged_row import StagedRow


class MemoryImportBatchStore:
    """Dict-backed IImportBatchStore for unit tests."""

    def __init__(self) -> None:
        self._batches: dict[str, ImportBatch] = {}
        self._lock = threading.Lock()

    def create(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            self._batches[batch.id] = batch.model_copy(deep=True)
        return batch

    def get(self, batch_id: str) -> ImportBatch:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise NotFoundError(f"Batch {batch_id} not found")
        return batch.model_copy(deep=True)

    def update(
        self, batch: ImportBatch, *, expected_status: Optional[BatchStatus] = None
    ) -> ImportBatch:
        with self._lock:
            current = self._batches.get(batch.id)
            if current is None:
                raise NotFoundError(f"Batch {batch.id} not found")
            if expected_status is not None and current.status != expected_status:
                raise StaleBatchError(batch.id)
            self._batches[batch.id] = batch.model_copy(deep=True)
        return batch

    def delete(self, batch_id: str) -> None:
        with self._lock:
            self._batches.pop(batch_id, None)

    def latest_for_period(
        self, organization_id: str, month: int, year: int
    ) -> Optional[ImportBatch]:
        matches = [
            b for b in self._batches.values()
            if b.organization_id == organization_id and b.month == month and b.year == year
        ]
        if not matches:
            return None
        return max(matches, key=lambda b: b.created_at).model_copy(deep=True)


class MemoryStagedRowStore:
    """Dict-backed IStagedRowStore for unit tests."""

    def __init__(self) -> None:
        self._rows: dict[tuple[str, str], list[StagedRow]] = {}

    def put_rows(self, batch_id: str, generation: str, rows: list[StagedRow]) -> None:
        bucket = self._rows.setdefault((batch_id, generation), [])
        bucket.extend(r.model_copy(deep=True) for r in rows)

    def list_rows(self, batch_id: str, generation: str) -> list[StagedRow]:
        rows = self._rows.get((batch_id, generation), [])
        return sorted((r.model_copy(deep=True) for r in rows), key=lambda r: r.row_index)

    def delete_generation(self, batch_id: str, generation: str) -> None:
        self._rows.pop((batch_id, generation), None)

    def delete_batch(self, batch_id: str) -> None:
        for key in [k for k in self._rows if k[0] == batch_id]:
            del self._rows[key]

    def generations(self, batch_id: str) -> list[str]:
        """Test helper: every generation currently stored for a batch."""
        return [gen for (bid, gen) in self._rows if bid == batch_id]


class MemoryOverrideStore:
    """Dict-backed IOverrideStore for unit tests."""

    def __init__(self) -> None:
        self._overrides: dict[tuple[str, str, int, int], MonthlyOverride] = {}

    def upsert_many(self, overrides: list[MonthlyOverride]) -> None:
        self._overrides.update({o.key: o.model_copy(deep=True) for o in overrides})

    def get(
        self, organization_id: str, employee_id: str, month: int, year: int
    ) -> Optional[MonthlyOverride]:
        return self._overrides.get((organization_id, employee_id, month, year))

    def list_for_period(
        self, organization_id: str, month: int, year: int
    ) -> list[MonthlyOverride]:
        return [
            o for (org, _emp, m, y), o in self._overrides.items()
            if org == organization_id and m == month and y == year
        ]


class MemoryEmployeeDirectory:
    """List-backed IEmployeeDirectory for unit tests."""

    def __init__(self, employees: Iterable[EmployeeRecord] = ()) -> None:
        self._employees: list[EmployeeRecord] = list(employees)
        self.lookup_calls = 0

    def add(self, employee: EmployeeRecord) -> None:
        self._employees.append(employee)

    def find_employees(
        self, organization_id: str, references: Iterable[str]
    ) -> list[EmployeeRecord]:
        self.lookup_calls += 1
        return [e for e in self._employees if e.organization_id == organization_id]


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        if key in self._store:
            return False
        self._store[key] = value
        return True

    def delete_if_equals(self, key: str, value: str) -> bool:
        if self._store.get(key) != value:
            return False
        del self._store[key]
        return True


class MemoryFileStore:
    """Dict-backed IFileStore for unit tests."""

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}

    def read(self, path: str) -> bytes:
        try:
            return self._files[path]
        except KeyError as exc:
            raise StorageError(f"Object {path!r} not found") from exc

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self._files[path] = data
        return path

    def delete(self, path: str) -> None:
        self._files.pop(path, None)

    def delete_prefix(self, prefix: str) -> list[str]:
        if not prefix.endswith("/"):
            raise StorageError(f"Refusing to delete non-folder prefix {prefix!r}")
        keys = [k for k in self._files if k.startswith(prefix)]
        for key in keys:
            del self._files[key]
        return keys

    def keys(self) -> list[str]:
        return sorted(self._files)
