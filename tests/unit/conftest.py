"""Unit test fixtures: memory-backed lifecycle manager."""

from __future__ import annotations

import pytest

from musterroll.core.config import PipelineConfig
from musterroll.models.employee import EmployeeRecord
from musterroll.pipeline.lifecycle import BatchLifecycleManager
from tests.fakes import (
    MemoryCacheBackend,
    MemoryEmployeeDirectory,
    MemoryFileStore,
    MemoryImportBatchStore,
    MemoryOverrideStore,
    MemoryStagedRowStore,
)
from tests.fakes.samples import E1, E2, ORG


@pytest.fixture
def employees() -> list[EmployeeRecord]:
    return [
        EmployeeRecord(id=E1, organization_id=ORG, name="Asha", employee_code="E001",
                       external_code="BIO-1", phone="+91 98450 11001"),
        EmployeeRecord(id=E2, organization_id=ORG, name="Vikram", employee_code="E002",
                       external_code="BIO-2", phone="+91 98450 11002"),
    ]


@pytest.fixture
def stores(employees):
    return {
        "batches": MemoryImportBatchStore(),
        "rows": MemoryStagedRowStore(),
        "overrides": MemoryOverrideStore(),
        "directory": MemoryEmployeeDirectory(employees),
        "files": MemoryFileStore(),
        "cache": MemoryCacheBackend(),
    }


@pytest.fixture
def manager(stores) -> BatchLifecycleManager:
    return BatchLifecycleManager(**stores, config=PipelineConfig(stage_chunk_size=2))
