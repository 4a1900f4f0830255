"""S3 object storage for uploaded attendance files."""

from __future__ import annotations

import boto3
from botocore.exceptions import ClientError

from musterroll.core.exceptions import StorageError


class S3FileStore:
    """Production IFileStore. Keys are ``{org}/{yyyy}-{mm}/{batch_id}/{filename}``."""

    def __init__(self, bucket: str, region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._bucket = bucket
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    def read(self, path: str) -> bytes:
        try:
            obj = self._client.get_object(Bucket=self._bucket, Key=path)
        except ClientError as exc:
            raise StorageError(f"Could not read source file {path!r}: {exc}") from exc
        return obj["Body"].read()

    def write(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        try:
            self._client.put_object(Bucket=self._bucket, Key=path, Body=data,
                                    ContentType=content_type)
        except ClientError as exc:
            raise StorageError(f"Could not store source file {path!r}: {exc}") from exc
        return path

    def delete(self, path: str) -> None:
        # S3 reports success for keys that do not exist
        try:
            self._client.delete_object(Bucket=self._bucket, Key=path)
        except ClientError as exc:
            raise StorageError(f"Could not delete source file {path!r}: {exc}") from exc

    def delete_prefix(self, prefix: str) -> list[str]:
        """Delete every object under ``prefix``, one ``delete_objects`` call per listing page."""
        if not prefix.endswith("/"):
            raise StorageError(f"Refusing to delete non-folder prefix {prefix!r}")
        deleted: list[str] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                keys = [obj["Key"] for obj in page.get("Contents", [])]
                if not keys:
                    continue
                resp = self._client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
                )
                if resp.get("Errors"):
                    raise StorageError(
                        f"Could not delete {len(resp['Errors'])} object(s) under {prefix!r}"
                    )
                deleted.extend(keys)
        except ClientError as exc:
            raise StorageError(f"Could not clear {prefix!r}: {exc}") from exc
        return deleted
