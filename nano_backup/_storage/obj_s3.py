"""Amazon S3 (or S3-compatible) object store backed by aioboto3."""

import os
from pathlib import Path
from typing import Any, Iterable, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from .._utils import logger
from ..errors import ObjectNotFoundError
from ..models import DeleteResult, ObjectEntry
from .base import BaseObjectStore

DOWNLOAD_CHUNK_SIZE = 1024 * 1024
DELETE_BATCH_SIZE = 1000  # S3 DeleteObjects limit
_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


def _is_not_found(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


class S3ObjectStore(BaseObjectStore):
    """Object store on an S3 bucket.

    Uploads stream from disk through the multipart transfer manager and
    request server-side encryption on top of the client-side encryption
    already applied to every artifact.
    """

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        server_side_encryption: Optional[str] = "AES256",
        storage_class: Optional[str] = "STANDARD_IA",
        session: Optional[Any] = None,
    ):
        """Initialize S3 object store.

        Args:
            bucket: Bucket holding the backup artifacts
            region: AWS region (defaults to AWS_REGION or us-east-1)
            endpoint_url: Custom endpoint for S3-compatible services
            server_side_encryption: Default ServerSideEncryption for uploads
            storage_class: Default StorageClass for uploads
            session: Optional preconfigured aioboto3 session
        """
        self.bucket = bucket
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self.endpoint_url = endpoint_url
        self.server_side_encryption = server_side_encryption
        self.storage_class = storage_class
        self.session = session or aioboto3.Session()

    def _client(self):
        return self.session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    async def put(
        self,
        key: str,
        source_path: Path,
        *,
        server_side_encryption: Optional[str] = None,
        storage_class: Optional[str] = None,
    ) -> None:
        extra_args = {}
        sse = server_side_encryption or self.server_side_encryption
        if sse:
            extra_args["ServerSideEncryption"] = sse
        tier = storage_class or self.storage_class
        if tier:
            extra_args["StorageClass"] = tier

        async with self._client() as s3:
            with open(source_path, "rb") as f:
                await s3.upload_fileobj(f, self.bucket, key, ExtraArgs=extra_args)

        logger.info(f"Uploaded s3://{self.bucket}/{key}")

    async def get(self, key: str, dest_path: Path) -> int:
        async with self._client() as s3:
            try:
                response = await s3.get_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if _is_not_found(e):
                    raise ObjectNotFoundError(key) from e
                raise

            written = 0
            with open(dest_path, "wb") as f:
                async with response["Body"] as stream:
                    while True:
                        chunk = await stream.read(DOWNLOAD_CHUNK_SIZE)
                        if not chunk:
                            break
                        f.write(chunk)
                        written += len(chunk)

        logger.info(f"Downloaded s3://{self.bucket}/{key} ({written:,} bytes)")
        return written

    async def list(self, prefix: str = "") -> List[ObjectEntry]:
        entries = []
        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    entries.append(ObjectEntry(
                        key=obj["Key"],
                        size=obj["Size"],
                        last_modified=obj["LastModified"],
                    ))
        return entries

    async def delete_many(self, keys: Iterable[str]) -> DeleteResult:
        keys = list(keys)
        result = DeleteResult()
        if not keys:
            return result

        async with self._client() as s3:
            for start in range(0, len(keys), DELETE_BATCH_SIZE):
                batch = keys[start:start + DELETE_BATCH_SIZE]
                try:
                    response = await s3.delete_objects(
                        Bucket=self.bucket,
                        Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
                    )
                except (ClientError, BotoCoreError) as e:
                    logger.error(f"Batch delete of {len(batch)} objects failed: {e}")
                    result.failed.update({k: str(e) for k in batch})
                    continue

                errors = {
                    err["Key"]: f"{err.get('Code')}: {err.get('Message')}"
                    for err in response.get("Errors", [])
                }
                for key in batch:
                    if key in errors:
                        result.failed[key] = errors[key]
                    else:
                        result.deleted.append(key)

        if result.failed:
            logger.warning(f"Failed to delete {len(result.failed)} of {len(keys)} objects")
        return result

    async def exists(self, key: str) -> bool:
        async with self._client() as s3:
            try:
                await s3.head_object(Bucket=self.bucket, Key=key)
            except ClientError as e:
                if _is_not_found(e):
                    return False
                raise
        return True
