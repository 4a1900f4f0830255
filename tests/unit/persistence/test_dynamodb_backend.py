"""Unit tests for the DynamoDB stores using moto."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta, timezone

import boto3
import pytest
from moto import mock_aws

from musterroll.core.exceptions import NotFoundError, StaleBatchError, UpstreamError
from musterroll.models.batch import BatchStatus, DetectedFormat, ImportBatch
from musterroll.models.override import MonthlyOverride, OverridePayload
from musterroll.models.staged_row import NormalizedFields, StagedRow
from musterroll.persistence.dynamodb_backend import (
    DynamoDBEmployeeDirectory,
    DynamoDBImportBatchStore,
    DynamoDBOverrideStore,
    DynamoDBStagedRowStore,
)
from musterroll.persistence.memory_backend import MemoryCacheBackend

TABLE_SUFFIX = "-test"
REGION = "us-east-1"

# ---------- helpers ----------

def _create_table(client, name: str, period_index: bool = False):
    """Create a DynamoDB table with PK/SK key schema (and the period GSI)."""
    attributes = [
        {"AttributeName": "PK", "AttributeType": "S"},
        {"AttributeName": "SK", "AttributeType": "S"},
    ]
    extra = {}
    if period_index:
        attributes += [
            {"AttributeName": "period_pk", "AttributeType": "S"},
            {"AttributeName": "created_sort", "AttributeType": "S"},
        ]
        extra["GlobalSecondaryIndexes"] = [{
            "IndexName": "PeriodIndex",
            "KeySchema": [
                {"AttributeName": "period_pk", "KeyType": "HASH"},
                {"AttributeName": "created_sort", "KeyType": "RANGE"},
            ],
            "Projection": {"ProjectionType": "ALL"},
        }]
    client.create_table(
        TableName=name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=attributes,
        BillingMode="PAY_PER_REQUEST",
        **extra,
    )


def _row(batch_id: str, i: int, **kw) -> StagedRow:
    return StagedRow(
        batch_id=batch_id, row_index=i, raw={"Emp Code": "E001", "Hours": "7.5"},
        normalized=NormalizedFields(date=date(2025, 3, 1 + i), hours=7.5, **kw),
        employee_id="e1", match_confidence=100,
    )


# ---------- fixtures ----------

@pytest.fixture
def aws():
    with mock_aws():
        ddb = boto3.resource("dynamodb", region_name=REGION)
        client = boto3.client("dynamodb", region_name=REGION)
        _create_table(client, f"musterroll-import-batches{TABLE_SUFFIX}", period_index=True)
        for name in ("musterroll-staged-rows", "musterroll-monthly-overrides",
                     "musterroll-employees"):
            _create_table(client, f"{name}{TABLE_SUFFIX}")
        yield ddb


@pytest.fixture
def batches(aws):
    return DynamoDBImportBatchStore(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def rows(aws):
    return DynamoDBStagedRowStore(table_suffix=TABLE_SUFFIX, region=REGION)


@pytest.fixture
def overrides(aws):
    return DynamoDBOverrideStore(table_suffix=TABLE_SUFFIX, region=REGION)


# ---------- import batches ----------

class TestImportBatchStore:
    def test_create_and_get(self, batches):
        batch = ImportBatch(organization_id="org-1", month=3, year=2025,
                            detected_format=DetectedFormat(headers=["a"], sample=[["1"]]))
        batches.create(batch)
        loaded = batches.get(batch.id)
        assert loaded == batch

    def test_get_missing_raises(self, batches):
        with pytest.raises(NotFoundError):
            batches.get("nope")

    def test_update_with_expected_status(self, batches):
        batch = batches.create(ImportBatch(organization_id="org-1", month=3, year=2025))
        mapped = batch.transition(BatchStatus.MAPPED)
        batches.update(mapped, expected_status=BatchStatus.UPLOADED)
        assert batches.get(batch.id).status == BatchStatus.MAPPED

    def test_stale_update_raises(self, batches):
        batch = batches.create(ImportBatch(organization_id="org-1", month=3, year=2025))
        batches.update(batch.transition(BatchStatus.MAPPED), expected_status=BatchStatus.UPLOADED)
        with pytest.raises(StaleBatchError):
            batches.update(batch.transition(BatchStatus.REJECTED),
                           expected_status=BatchStatus.UPLOADED)

    def test_update_deleted_batch_raises_not_found(self, batches):
        batch = batches.create(ImportBatch(organization_id="org-1", month=3, year=2025))
        batches.delete(batch.id)
        with pytest.raises(NotFoundError):
            batches.update(batch.transition(BatchStatus.MAPPED))

    def test_latest_for_period(self, batches):
        old = ImportBatch(organization_id="org-1", month=3, year=2025)
        new = ImportBatch(organization_id="org-1", month=3, year=2025,
                          created_at=old.created_at + timedelta(seconds=5))
        other = ImportBatch(organization_id="org-1", month=4, year=2025,
                            created_at=old.created_at + timedelta(seconds=9))
        for b in (new, old, other):
            batches.create(b)
        assert batches.latest_for_period("org-1", 3, 2025).id == new.id
        assert batches.latest_for_period("org-2", 3, 2025) is None


# ---------- staged rows ----------

class TestStagedRowStore:
    def test_put_and_list_generation(self, rows):
        rows.put_rows("b1", "g1", [_row("b1", 1), _row("b1", 0, lop_days=1.5)])
        rows.put_rows("b1", "g2", [_row("b1", 0)])
        listed = rows.list_rows("b1", "g1")
        assert [r.row_index for r in listed] == [0, 1]
        assert listed[0].normalized.lop_days == 1.5
        assert listed[1].normalized.hours == 7.5
        assert listed[1].raw == {"Emp Code": "E001", "Hours": "7.5"}

    def test_delete_generation_keeps_others(self, rows):
        rows.put_rows("b1", "g1", [_row("b1", 0)])
        rows.put_rows("b1", "g2", [_row("b1", 0)])
        rows.delete_generation("b1", "g1")
        assert rows.list_rows("b1", "g1") == []
        assert len(rows.list_rows("b1", "g2")) == 1

    def test_delete_batch(self, rows):
        rows.put_rows("b1", "g1", [_row("b1", i) for i in range(30)])
        rows.put_rows("b2", "g1", [_row("b2", 0)])
        rows.delete_batch("b1")
        assert rows.list_rows("b1", "g1") == []
        assert len(rows.list_rows("b2", "g1")) == 1


# ---------- overrides ----------

class TestOverrideStore:
    def _override(self, batch_id: str, payable: float, employee_id: str = "e1") -> MonthlyOverride:
        return MonthlyOverride(
            organization_id="org-1", employee_id=employee_id, month=3, year=2025,
            source_batch_id=batch_id, payload=OverridePayload(payable_days=payable, ot_hours=2.5),
            approved_by="boss", approved_at=datetime.now(timezone.utc),
        )

    def test_upsert_replaces(self, overrides):
        overrides.upsert_many([self._override("a", 20)])
        overrides.upsert_many([self._override("b", 22)])
        period = overrides.list_for_period("org-1", 3, 2025)
        assert len(period) == 1
        assert period[0].source_batch_id == "b"
        assert period[0].payload.payable_days == 22
        assert period[0].payload.ot_hours == 2.5

    def test_upsert_many_spans_transaction_chunks(self, overrides):
        batch = [self._override("a", 20, employee_id=f"e{i}") for i in range(150)]
        overrides.upsert_many(batch)
        assert len(overrides.list_for_period("org-1", 3, 2025)) == 150

    def test_duplicate_keys_in_one_transaction_write_nothing(self, overrides):
        with pytest.raises(UpstreamError):
            overrides.upsert_many([self._override("a", 20, employee_id="e7"),
                                   self._override("a", 20, employee_id="e8"),
                                   self._override("a", 21, employee_id="e7")])
        assert overrides.list_for_period("org-1", 3, 2025) == []

    def test_get_missing(self, overrides):
        assert overrides.get("org-1", "ghost", 3, 2025) is None


# ---------- employee directory ----------

class TestEmployeeDirectory:
    def _seed(self, aws):
        tbl = aws.Table(f"musterroll-employees{TABLE_SUFFIX}")
        tbl.put_item(Item={"PK": "ORG#org-1", "SK": "EMP#e1", "id": "e1",
                           "organization_id": "org-1", "employee_code": "E001"})
        tbl.put_item(Item={"PK": "ORG#org-2", "SK": "EMP#e9", "id": "e9",
                           "organization_id": "org-2", "employee_code": "E001"})

    def test_loads_only_organization(self, aws):
        self._seed(aws)
        directory = DynamoDBEmployeeDirectory(table_suffix=TABLE_SUFFIX, region=REGION)
        found = directory.find_employees("org-1", ["E001"])
        assert [e.id for e in found] == ["e1"]

    def test_caches_directory(self, aws):
        self._seed(aws)
        cache = MemoryCacheBackend()
        directory = DynamoDBEmployeeDirectory(table_suffix=TABLE_SUFFIX, region=REGION, cache=cache)
        directory.find_employees("org-1", ["E001"])
        cached = json.loads(cache.get("directory:org-1"))
        assert cached[0]["employee_code"] == "E001"
        aws.Table(f"musterroll-employees{TABLE_SUFFIX}").delete_item(
            Key={"PK": "ORG#org-1", "SK": "EMP#e1"}
        )
        assert [e.id for e in directory.find_employees("org-1", [])] == ["e1"]
