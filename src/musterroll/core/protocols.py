"""Protocol interfaces for all MusterRoll abstractions.

All inter-layer communication goes through these Protocols. Backends
satisfy them structurally and are checked with isinstance().
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from musterroll.models.batch import BatchStatus, ImportBatch
    from musterroll.models.employee import EmployeeRecord
    from musterroll.models.mapping import MappingSuggestion
    from musterroll.models.override import MonthlyOverride
    from musterroll.models.staged_row import StagedRow
    from musterroll.models.validation import OracleReview

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Model Provider
# ---------------------------------------------------------------------------

@runtime_checkable
class IModelProvider(Protocol):
    """Abstraction over LLM providers (mock, Bedrock)."""

    def chat(self, messages: list[dict[str, str]], **kwargs: Any) -> str: ...

    def structured_output(
        self, messages: list[dict[str, str]], response_model: type[T], **kwargs: Any
    ) -> T: ...


# ---------------------------------------------------------------------------
# Suggestion Oracle
# ---------------------------------------------------------------------------

@runtime_checkable
class ISuggestionOracle(Protocol):
    """Best-effort advisor: mapping proposals and soft validation warnings."""

    def suggest_mapping(
        self, headers: list[str], sample: list[list[str]]
    ) -> MappingSuggestion: ...

    def review(self, batch: ImportBatch, rows: list[StagedRow]) -> OracleReview: ...


# ---------------------------------------------------------------------------
# Persistence: Import Batches
# ---------------------------------------------------------------------------

@runtime_checkable
class IImportBatchStore(Protocol):
    """ImportBatch persistence with status compare-and-swap."""

    def create(self, batch: ImportBatch) -> ImportBatch: ...

    def get(self, batch_id: str) -> ImportBatch: ...

    def update(
        self, batch: ImportBatch, *, expected_status: Optional[BatchStatus] = None
    ) -> ImportBatch: ...

    def delete(self, batch_id: str) -> None: ...

    def latest_for_period(
        self, organization_id: str, month: int, year: int
    ) -> Optional[ImportBatch]: ...


# ---------------------------------------------------------------------------
# Persistence: Staged Rows
# ---------------------------------------------------------------------------

@runtime_checkable
class IStagedRowStore(Protocol):
    """Staged rows grouped into generations; one generation is live per batch."""

    def put_rows(self, batch_id: str, generation: str, rows: list[StagedRow]) -> None: ...

    def list_rows(self, batch_id: str, generation: str) -> list[StagedRow]: ...

    def delete_generation(self, batch_id: str, generation: str) -> None: ...

    def delete_batch(self, batch_id: str) -> None: ...


# ---------------------------------------------------------------------------
# Persistence: Monthly Overrides
# ---------------------------------------------------------------------------

@runtime_checkable
class IOverrideStore(Protocol):
    """Overrides keyed on (organization_id, employee_id, month, year).

    ``upsert_many`` replaces each override whole. A set that fits one backend
    transaction is committed all-or-nothing.
    """

    def upsert_many(self, overrides: list[MonthlyOverride]) -> None: ...

    def get(
        self, organization_id: str, employee_id: str, month: int, year: int
    ) -> Optional[MonthlyOverride]: ...

    def list_for_period(
        self, organization_id: str, month: int, year: int
    ) -> list[MonthlyOverride]: ...


# ---------------------------------------------------------------------------
# Employee Directory
# ---------------------------------------------------------------------------

@runtime_checkable
class IEmployeeDirectory(Protocol):
    """Bulk employee lookup; one call per staging run."""

    def find_employees(
        self, organization_id: str, references: Iterable[str]
    ) -> list[EmployeeRecord]: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface, including lock primitives."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool: ...

    def delete_if_equals(self, key: str, value: str) -> bool: ...


# ---------------------------------------------------------------------------
# Persistence: File Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IFileStore(Protocol):
    """S3-compatible object storage for uploaded source files."""

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str: ...

    def delete(self, path: str) -> None: ...

    def delete_prefix(self, prefix: str) -> list[str]: ...
