from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cloudsync.exceptions import PreconditionFailedError, S3Error
from cloudsync.storage import ObjectMeta, StoredObject, format_etag, normalize_etag

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}
_PRECONDITION_CODES = {"412", "PreconditionFailed", "409", "ConditionalRequestConflict"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3Storage:
    """S3-compatible store (AWS S3, Cloudflare R2, MinIO).

    Conditional writes are delegated to the backend's native ``If-Match`` /
    ``If-None-Match`` support on PutObject, which keeps check-then-write atomic
    across any number of gateway instances.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        if client is None:
            session = boto3.session.Session(region_name=region) if region else boto3.session.Session()
            client = session.client("s3", endpoint_url=endpoint_url) if endpoint_url else session.client("s3")
        self.client = client

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key}" if self.prefix else key

    def head(self, key: str) -> ObjectMeta | None:
        try:
            response = self.client.head_object(Bucket=self.bucket, Key=self._key(key))
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return None
            raise S3Error(str(exc), {"key": key}) from exc
        except BotoCoreError as exc:
            raise S3Error(str(exc), {"key": key}) from exc
        return ObjectMeta(
            key=key,
            etag=normalize_etag(response["ETag"]),
            last_modified=response["LastModified"],
            size=int(response.get("ContentLength", 0)),
        )

    def get(self, key: str) -> StoredObject | None:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
            body = response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return None
            raise S3Error(str(exc), {"key": key}) from exc
        except BotoCoreError as exc:
            raise S3Error(str(exc), {"key": key}) from exc
        meta = ObjectMeta(
            key=key,
            etag=normalize_etag(response["ETag"]),
            last_modified=response["LastModified"],
            size=len(body),
        )
        return StoredObject(meta=meta, body=body)

    def put(self, key: str, data: bytes, if_match: str | None = None) -> ObjectMeta:
        params: dict[str, Any] = {"Bucket": self.bucket, "Key": self._key(key), "Body": data}
        if if_match is not None:
            params["IfMatch"] = format_etag(if_match)
        try:
            response = self.client.put_object(**params)
        except ClientError as exc:
            code = _error_code(exc)
            if code in _PRECONDITION_CODES:
                raise PreconditionFailedError("Precondition Failed", {"key": key, "expected": if_match or ""}) from exc
            if if_match is not None and code in _MISSING_CODES:
                # Absent objects accept a conditional write, but only if nobody
                # creates the key in the meantime.
                return self._create(key, data)
            raise S3Error(str(exc), {"key": key}) from exc
        except BotoCoreError as exc:
            raise S3Error(str(exc), {"key": key}) from exc
        return self._meta_from_put(key, data, response)

    def _create(self, key: str, data: bytes) -> ObjectMeta:
        try:
            response = self.client.put_object(
                Bucket=self.bucket, Key=self._key(key), Body=data, IfNoneMatch="*"
            )
        except ClientError as exc:
            if _error_code(exc) in _PRECONDITION_CODES:
                raise PreconditionFailedError("Precondition Failed", {"key": key}) from exc
            raise S3Error(str(exc), {"key": key}) from exc
        except BotoCoreError as exc:
            raise S3Error(str(exc), {"key": key}) from exc
        return self._meta_from_put(key, data, response)

    def _meta_from_put(self, key: str, data: bytes, response: dict[str, Any]) -> ObjectMeta:
        return ObjectMeta(
            key=key,
            etag=normalize_etag(response["ETag"]),
            last_modified=datetime.now(timezone.utc),
            size=len(data),
        )

    def delete(self, key: str) -> bool:
        if self.head(key) is None:
            return False
        try:
            self.client.delete_object(Bucket=self.bucket, Key=self._key(key))
        except (ClientError, BotoCoreError) as exc:
            raise S3Error(str(exc), {"key": key}) from exc
        return True


__all__ = ["S3Storage"]
