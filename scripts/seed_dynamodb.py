"""Create MusterRoll DynamoDB tables and seed a sample employee directory.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "musterroll-import-batches", "period_index": True},
    {"name": "musterroll-staged-rows"},
    {"name": "musterroll-monthly-overrides"},
    {"name": "musterroll-employees"},
]

PERIOD_INDEX = "PeriodIndex"


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create all 4 DynamoDB tables. Skips if table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        attributes = [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ]
        extra: dict[str, Any] = {}
        if defn.get("period_index"):
            attributes += [
                {"AttributeName": "period_pk", "AttributeType": "S"},
                {"AttributeName": "created_sort", "AttributeType": "S"},
            ]
            extra["GlobalSecondaryIndexes"] = [{
                "IndexName": PERIOD_INDEX,
                "KeySchema": [
                    {"AttributeName": "period_pk", "KeyType": "HASH"},
                    {"AttributeName": "created_sort", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            }]
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=attributes,
            BillingMode="PAY_PER_REQUEST",
            **extra,
        )
        print(f"  Created table {table_name}")


def seed_employees(ddb: Any, suffix: str = "") -> int:
    """Load employees_seed.json into the employee directory table."""
    seed_path = Path(__file__).resolve().parent.parent / "config" / "employees_seed.json"
    data = json.loads(seed_path.read_text())
    org = data["organization_id"]

    tbl = ddb.Table(f"musterroll-employees{suffix}")
    with tbl.batch_writer() as batch:
        for emp in data["employees"]:
            batch.put_item(Item={
                "PK": f"ORG#{org}",
                "SK": f"EMP#{emp['id']}",
                "organization_id": org,
                **emp,
            })
    print(f"  Seeded {len(data['employees'])} employees for {org}")
    return len(data["employees"])


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for MusterRoll")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding employees...")
    seed_employees(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
