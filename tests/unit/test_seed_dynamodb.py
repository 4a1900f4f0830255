"""Tests for DynamoDB seed script."""

from __future__ import annotations

import sys
from pathlib import Path

import boto3
import pytest
from moto import mock_aws

# Make scripts/ importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent / "scripts"))

from seed_dynamodb import create_tables, seed_employees  # noqa: E402

from musterroll.persistence.dynamodb_backend import DynamoDBEmployeeDirectory  # noqa: E402


@pytest.fixture
def ddb():
    with mock_aws():
        yield boto3.resource("dynamodb", region_name="us-east-1")


class TestCreateTables:
    def test_creates_all_four_tables(self, ddb):
        create_tables(ddb, suffix="-test")
        client = boto3.client("dynamodb", region_name="us-east-1")
        tables = client.list_tables()["TableNames"]
        assert len(tables) == 4
        assert "musterroll-import-batches-test" in tables

    def test_batches_table_has_period_index(self, ddb):
        create_tables(ddb, suffix="-test")
        client = boto3.client("dynamodb", region_name="us-east-1")
        desc = client.describe_table(TableName="musterroll-import-batches-test")["Table"]
        assert [i["IndexName"] for i in desc["GlobalSecondaryIndexes"]] == ["PeriodIndex"]

    def test_idempotent_skips_existing(self, ddb):
        create_tables(ddb, suffix="-test")
        create_tables(ddb, suffix="-test")  # should not raise
        client = boto3.client("dynamodb", region_name="us-east-1")
        assert len(client.list_tables()["TableNames"]) == 4


class TestSeedEmployees:
    def test_seeds_directory(self, ddb):
        create_tables(ddb, suffix="-test")
        count = seed_employees(ddb, suffix="-test")
        resp = ddb.Table("musterroll-employees-test").scan()
        assert resp["Count"] == count == 4

    def test_seeded_directory_is_readable(self, ddb):
        create_tables(ddb, suffix="-test")
        seed_employees(ddb, suffix="-test")
        directory = DynamoDBEmployeeDirectory(table_suffix="-test", region="us-east-1")
        codes = sorted(e.employee_code for e in directory.find_employees("org-demo", []))
        assert codes == ["E001", "E002", "E003", "E004"]
