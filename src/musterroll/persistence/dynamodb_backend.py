"""DynamoDB backends for batches, staged rows, overrides and the employee directory."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any, Iterable, Iterator, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from musterroll.core.exceptions import NotFoundError, StaleBatchError, UpstreamError
from musterroll.models.batch import BatchStatus, ImportBatch
from musterroll.models.employee import EmployeeRecord
from musterroll.models.override import MonthlyOverride
from musterroll.models.staged_row import StagedRow

logger = logging.getLogger(__name__)

BATCHES_TABLE = "musterroll-import-batches"
STAGED_ROWS_TABLE = "musterroll-staged-rows"
OVERRIDES_TABLE = "musterroll-monthly-overrides"
EMPLOYEES_TABLE = "musterroll-employees"
PERIOD_INDEX = "PeriodIndex"

_KEY_ATTRS = ("PK", "SK", "period_pk", "created_sort")


def _encode(obj: Any) -> Any:
    """Convert floats to Decimal for DynamoDB."""
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _encode(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_encode(i) for i in obj]
    return obj


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        elif isinstance(v, list):
            out[k] = [
                _decode_decimals(i) if isinstance(i, dict)
                else (int(i) if isinstance(i, Decimal) and i == int(i) else float(i) if isinstance(i, Decimal) else i)
                for i in v
            ]
        else:
            out[k] = v
    return out


def _strip_keys(item: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in _decode_decimals(item).items() if k not in _KEY_ATTRS}


def _period_pk(organization_id: str, month: int, year: int) -> str:
    return f"ORG#{organization_id}#PERIOD#{year}-{month:02d}"


class _DynamoDBTable:
    """Shared boto3 wiring for the stores below."""

    TABLE_BASE = ""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._tbl = self._ddb.Table(f"{self.TABLE_BASE}{table_suffix}")

    def _query_all(self, **kwargs: Any) -> Iterator[dict[str, Any]]:
        """Query with pagination, yielding raw items."""
        try:
            while True:
                resp = self._tbl.query(**kwargs)
                yield from resp.get("Items", [])
                last = resp.get("LastEvaluatedKey")
                if not last:
                    return
                kwargs["ExclusiveStartKey"] = last
        except ClientError as exc:
            raise UpstreamError(f"DynamoDB query on {self._tbl.name} failed: {exc}") from exc


class DynamoDBImportBatchStore(_DynamoDBTable):
    """Production IImportBatchStore. Status changes are conditional writes."""

    TABLE_BASE = BATCHES_TABLE

    def _to_item(self, batch: ImportBatch) -> dict[str, Any]:
        item = _encode(batch.model_dump(mode="json"))
        item["PK"] = f"BATCH#{batch.id}"
        item["SK"] = "META"
        item["period_pk"] = _period_pk(batch.organization_id, batch.month, batch.year)
        item["created_sort"] = batch.created_at.strftime("%Y-%m-%dT%H:%M:%S.%f")
        return item

    def create(self, batch: ImportBatch) -> ImportBatch:
        try:
            self._tbl.put_item(
                Item=self._to_item(batch),
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            raise UpstreamError(f"Create batch {batch.id} failed: {exc}") from exc
        return batch

    def get(self, batch_id: str) -> ImportBatch:
        try:
            resp = self._tbl.get_item(Key={"PK": f"BATCH#{batch_id}", "SK": "META"})
        except ClientError as exc:
            raise UpstreamError(f"Get batch {batch_id} failed: {exc}") from exc
        item = resp.get("Item")
        if item is None:
            raise NotFoundError(f"Batch {batch_id} not found")
        return ImportBatch.model_validate(_strip_keys(item))

    def update(
        self, batch: ImportBatch, *, expected_status: Optional[BatchStatus] = None
    ) -> ImportBatch:
        kwargs: dict[str, Any] = {"ConditionExpression": "attribute_exists(PK)"}
        if expected_status is not None:
            kwargs = {
                "ConditionExpression": "attribute_exists(PK) AND #s = :expected",
                "ExpressionAttributeNames": {"#s": "status"},
                "ExpressionAttributeValues": {":expected": expected_status.value},
            }
        try:
            self._tbl.put_item(Item=self._to_item(batch), **kwargs)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                self.get(batch.id)  # raises NotFoundError when the batch is gone
                raise StaleBatchError(batch.id) from exc
            raise UpstreamError(f"Update batch {batch.id} failed: {exc}") from exc
        return batch

    def delete(self, batch_id: str) -> None:
        try:
            self._tbl.delete_item(Key={"PK": f"BATCH#{batch_id}", "SK": "META"})
        except ClientError as exc:
            raise UpstreamError(f"Delete batch {batch_id} failed: {exc}") from exc

    def latest_for_period(
        self, organization_id: str, month: int, year: int
    ) -> Optional[ImportBatch]:
        try:
            resp = self._tbl.query(
                IndexName=PERIOD_INDEX,
                KeyConditionExpression=Key("period_pk").eq(_period_pk(organization_id, month, year)),
                ScanIndexForward=False,
                Limit=1,
            )
        except ClientError as exc:
            raise UpstreamError(f"Period lookup failed: {exc}") from exc
        items = resp.get("Items", [])
        return ImportBatch.model_validate(_strip_keys(items[0])) if items else None


class DynamoDBStagedRowStore(_DynamoDBTable):
    """Production IStagedRowStore; rows keyed by generation then row index."""

    TABLE_BASE = STAGED_ROWS_TABLE

    @staticmethod
    def _sk_prefix(generation: str) -> str:
        return f"GEN#{generation}#ROW#"

    def put_rows(self, batch_id: str, generation: str, rows: list[StagedRow]) -> None:
        try:
            with self._tbl.batch_writer() as writer:
                for row in rows:
                    item = _encode(row.model_dump(mode="json"))
                    item["PK"] = f"BATCH#{batch_id}"
                    item["SK"] = f"{self._sk_prefix(generation)}{row.row_index:07d}"
                    writer.put_item(Item=item)
        except ClientError as exc:
            raise UpstreamError(
                f"Writing {len(rows)} staged rows for batch {batch_id} failed: {exc}"
            ) from exc

    def list_rows(self, batch_id: str, generation: str) -> list[StagedRow]:
        items = self._query_all(
            KeyConditionExpression=Key("PK").eq(f"BATCH#{batch_id}")
            & Key("SK").begins_with(self._sk_prefix(generation)),
        )
        return [StagedRow.model_validate(_strip_keys(i)) for i in items]

    def _delete_where(self, condition: Any) -> None:
        keys = list(self._query_all(KeyConditionExpression=condition, ProjectionExpression="PK, SK"))
        try:
            with self._tbl.batch_writer() as writer:
                for k in keys:
                    writer.delete_item(Key={"PK": k["PK"], "SK": k["SK"]})
        except ClientError as exc:
            raise UpstreamError(f"Deleting staged rows failed: {exc}") from exc

    def delete_generation(self, batch_id: str, generation: str) -> None:
        self._delete_where(
            Key("PK").eq(f"BATCH#{batch_id}") & Key("SK").begins_with(self._sk_prefix(generation))
        )

    def delete_batch(self, batch_id: str) -> None:
        self._delete_where(Key("PK").eq(f"BATCH#{batch_id}"))


class DynamoDBOverrideStore(_DynamoDBTable):
    """Production IOverrideStore.

    Each override is a whole-item Put. Puts are grouped into
    ``transact_write_items`` calls of at most TRANSACT_LIMIT items, so an
    organization of up to that many employees is committed all-or-nothing.
    Larger sets commit per chunk; re-running the same apply converges.
    """

    TABLE_BASE = OVERRIDES_TABLE
    TRANSACT_LIMIT = 100

    def _item(self, override: MonthlyOverride) -> dict[str, Any]:
        item = _encode(override.model_dump(mode="json"))
        item["PK"] = _period_pk(override.organization_id, override.month, override.year)
        item["SK"] = f"EMP#{override.employee_id}"
        return item

    def upsert_many(self, overrides: list[MonthlyOverride]) -> None:
        client = self._ddb.meta.client
        for start in range(0, len(overrides), self.TRANSACT_LIMIT):
            chunk = overrides[start:start + self.TRANSACT_LIMIT]
            try:
                client.transact_write_items(TransactItems=[
                    {"Put": {"TableName": self._tbl.name, "Item": self._item(o)}}
                    for o in chunk
                ])
            except ClientError as exc:
                raise UpstreamError(
                    f"Override upsert failed after {start} of {len(overrides)} written: {exc}"
                ) from exc

    def get(
        self, organization_id: str, employee_id: str, month: int, year: int
    ) -> Optional[MonthlyOverride]:
        try:
            resp = self._tbl.get_item(
                Key={"PK": _period_pk(organization_id, month, year), "SK": f"EMP#{employee_id}"}
            )
        except ClientError as exc:
            raise UpstreamError(f"Override lookup failed: {exc}") from exc
        item = resp.get("Item")
        return MonthlyOverride.model_validate(_strip_keys(item)) if item else None

    def list_for_period(
        self, organization_id: str, month: int, year: int
    ) -> list[MonthlyOverride]:
        items = self._query_all(
            KeyConditionExpression=Key("PK").eq(_period_pk(organization_id, month, year))
        )
        return [MonthlyOverride.model_validate(_strip_keys(i)) for i in items]


class DynamoDBEmployeeDirectory(_DynamoDBTable):
    """Production IEmployeeDirectory with optional Redis caching.

    One partition query per organization returns the whole directory;
    reference matching happens in the IdentityResolver.
    """

    TABLE_BASE = EMPLOYEES_TABLE
    CACHE_TTL = 300  # 5 minutes

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None, cache: Any = None) -> None:
        super().__init__(table_suffix=table_suffix, region=region, endpoint_url=endpoint_url)
        self._cache = cache

    def find_employees(
        self, organization_id: str, references: Iterable[str]
    ) -> list[EmployeeRecord]:
        cache_key = f"directory:{organization_id}"

        # Check cache first
        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return [EmployeeRecord.model_validate(e) for e in json.loads(cached)]

        items = self._query_all(KeyConditionExpression=Key("PK").eq(f"ORG#{organization_id}"))
        employees = [EmployeeRecord.model_validate(_strip_keys(i)) for i in items]
        logger.debug("Loaded %d employees for organization %s", len(employees), organization_id)

        if self._cache is not None:
            self._cache.setex(
                cache_key, self.CACHE_TTL, json.dumps([e.model_dump() for e in employees])
            )

        return employees
