"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from typing import NamedTuple

from musterroll.core.config import AppSettings
from musterroll.core.protocols import (
    ICacheBackend,
    IEmployeeDirectory,
    IFileStore,
    IImportBatchStore,
    IOverrideStore,
    IStagedRowStore,
)
from musterroll.persistence.dynamodb_backend import (
    DynamoDBEmployeeDirectory,
    DynamoDBImportBatchStore,
    DynamoDBOverrideStore,
    DynamoDBStagedRowStore,
)
from musterroll.persistence.redis_backend import RedisCacheBackend
from musterroll.persistence.s3_backend import S3FileStore


class Persistence(NamedTuple):
    batches: IImportBatchStore
    rows: IStagedRowStore
    overrides: IOverrideStore
    directory: IEmployeeDirectory
    files: IFileStore
    cache: ICacheBackend


def create_persistence(settings: AppSettings | None = None) -> Persistence:
    """Create wired-up persistence backends from application settings."""
    if settings is None:
        settings = AppSettings()

    cache = RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
    )

    ddb_kwargs = {
        "table_suffix": settings.dynamodb.table_suffix,
        "region": settings.dynamodb.region,
        "endpoint_url": settings.dynamodb.endpoint_url,
    }

    files = S3FileStore(
        bucket=settings.s3.bucket,
        region=settings.s3.region,
        endpoint_url=settings.s3.endpoint_url,
    )

    return Persistence(
        batches=DynamoDBImportBatchStore(**ddb_kwargs),
        rows=DynamoDBStagedRowStore(**ddb_kwargs),
        overrides=DynamoDBOverrideStore(**ddb_kwargs),
        directory=DynamoDBEmployeeDirectory(**ddb_kwargs, cache=cache),
        files=files,
        cache=cache,
    )
