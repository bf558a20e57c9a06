"""Cloudflare R2 storage client (S3-compatible).

Provides get_object(), head_object() and put_object() operations using boto3
with the S3-compatible API against a single R2 bucket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import boto3
from botocore.exceptions import ClientError

from transcription_relay.utils.errors import (
    ObjectExistsError,
    ObjectNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}
_PRECONDITION_CODES = {"PreconditionFailed", "412"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", "Unknown"))


@dataclass
class StoredObject:
    """Object body plus the content type it was stored with."""

    data: bytes
    content_type: str = ""


class R2Client:
    """S3-compatible client for one Cloudflare R2 bucket."""

    def __init__(
        self,
        endpoint_url: str,
        bucket: str,
        access_key_id: str = "",
        secret_access_key: str = "",
    ) -> None:
        self.endpoint_url = endpoint_url
        self.bucket = bucket

        if not self.endpoint_url:
            raise StorageError("R2_ENDPOINT is required", operation="init")
        if not self.bucket:
            raise StorageError("R2 bucket name is required", operation="init")

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name="auto",
        )

    def get_object(self, key: str) -> StoredObject:
        """Retrieve an object from R2 by key.

        Args:
            key: The R2 object key (e.g., "acme/item-1/{job_id}.wav").

        Returns:
            StoredObject with the raw bytes and stored content type.

        Raises:
            ObjectNotFoundError: If the key does not exist.
            StorageError: If the object cannot be retrieved.
        """
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return StoredObject(
                data=response["Body"].read(),
                content_type=response.get("ContentType", "") or "",
            )
        except ClientError as exc:
            error_code = _error_code(exc)
            if error_code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"R2 object '{key}' not found in '{self.bucket}'", key=key
                ) from exc
            raise StorageError(
                f"Failed to fetch R2 object '{key}': {error_code}",
                operation="get_object",
            ) from exc

    def head_object(self, key: str) -> bool:
        """Check whether an object exists.

        Raises:
            StorageError: If R2 fails for a reason other than a missing key.
        """
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as exc:
            error_code = _error_code(exc)
            if error_code in _NOT_FOUND_CODES:
                return False
            raise StorageError(
                f"Failed to head R2 object '{key}': {error_code}",
                operation="head_object",
            ) from exc

    def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "",
        if_none_match: bool = False,
    ) -> None:
        """Store an object in R2.

        Args:
            key: The R2 object key.
            data: Raw bytes to store.
            content_type: Optional MIME content type.
            if_none_match: Only create the object if the key is absent.

        Raises:
            ObjectExistsError: If ``if_none_match`` is set and the key exists.
            StorageError: If the object cannot be stored.
        """
        try:
            kwargs: dict = {"Bucket": self.bucket, "Key": key, "Body": data}
            if content_type:
                kwargs["ContentType"] = content_type
            if if_none_match:
                kwargs["IfNoneMatch"] = "*"
            self._client.put_object(**kwargs)
        except ClientError as exc:
            error_code = _error_code(exc)
            if if_none_match and error_code in _PRECONDITION_CODES:
                raise ObjectExistsError(
                    f"R2 object '{key}' already exists", key=key
                ) from exc
            raise StorageError(
                f"Failed to put R2 object '{key}': {error_code}",
                operation="put_object",
            ) from exc
