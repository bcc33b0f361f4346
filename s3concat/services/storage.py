"""
Storage Gateway - Single Responsibility: talk to the S3 API.

Thin aioboto3 adapter implementing IStorageGateway. Every backend failure is
re-raised as TransportError carrying the decoded remote message.
"""
from typing import Any, Dict, List, Optional, Sequence
import logging
import os

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import TransportError
from ..models import ListingPage, RemotePart, SourceObject

logger = logging.getLogger(__name__)


def _resolve_endpoint_url() -> Optional[str]:
    return os.getenv("S3CONCAT_ENDPOINT_URL") or os.getenv("AWS_ENDPOINT_URL") or None


def _resolve_region() -> Optional[str]:
    return os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or None


class S3StorageGateway:
    """
    S3 gateway backed by aioboto3.

    Credentials and region follow the standard AWS provider chain; an
    S3-compatible endpoint may be set via S3CONCAT_ENDPOINT_URL.

    Usage:
        async with S3StorageGateway() as gateway:
            page = await gateway.list_objects("bucket", "logs")
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        connect_timeout: float = 5.0,
        max_attempts: int = 3,
    ):
        """
        Initialize gateway.

        Args:
            endpoint_url: Custom S3 endpoint (MinIO, LocalStack, ...)
            region: AWS region; defaults to the environment
            connect_timeout: Connection timeout in seconds
            max_attempts: botocore retry attempts per call
        """
        self._endpoint_url = endpoint_url or _resolve_endpoint_url()
        self._region = region or _resolve_region()
        self._config = Config(
            connect_timeout=connect_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        )
        self._session = aioboto3.Session()
        self._client_context = None
        self._client = None

    async def __aenter__(self):
        kwargs: Dict[str, Any] = {"config": self._config}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        if self._region:
            kwargs["region_name"] = self._region
        self._client_context = self._session.client("s3", **kwargs)
        self._client = await self._client_context.__aenter__()
        return self

    async def __aexit__(self, *args):
        if self._client_context is not None:
            await self._client_context.__aexit__(*args)
        self._client_context = None
        self._client = None

    @property
    def client(self):
        if self._client is None:
            raise RuntimeError("S3StorageGateway not initialized. Use 'async with' context.")
        return self._client

    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        continuation_token: Optional[str] = None,
    ) -> ListingPage:
        kwargs: Dict[str, Any] = {"Bucket": bucket}
        if prefix:
            kwargs["Prefix"] = prefix
        if continuation_token:
            kwargs["ContinuationToken"] = continuation_token
        try:
            response = await self.client.list_objects_v2(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("list_objects", exc) from exc

        entries = tuple(
            SourceObject(key=item["Key"], size=int(item.get("Size", 0)))
            for item in response.get("Contents", [])
        )
        next_token = response.get("NextContinuationToken") if response.get("IsTruncated") else None
        logger.debug(
            "Listed %d objects in s3://%s/%s (more=%s)",
            len(entries), bucket, prefix or "", next_token is not None,
        )
        return ListingPage(entries=entries, next_token=next_token)

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        try:
            response = await self.client.create_multipart_upload(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("create_multipart_upload", exc) from exc

        upload_id = response.get("UploadId")
        if not upload_id:
            raise TransportError("create_multipart_upload", f"No upload id returned for {key}")
        return upload_id

    async def copy_object_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        source_key: str,
    ) -> str:
        try:
            response = await self.client.upload_part_copy(
                Bucket=bucket,
                Key=key,
                UploadId=upload_id,
                PartNumber=part_number,
                CopySource={"Bucket": bucket, "Key": source_key},
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("copy_object_part", exc) from exc
        return response.get("CopyPartResult", {}).get("ETag", "")

    async def list_upload_parts(self, bucket: str, key: str, upload_id: str) -> List[RemotePart]:
        parts: List[RemotePart] = []
        marker: Optional[int] = None
        while True:
            kwargs: Dict[str, Any] = {"Bucket": bucket, "Key": key, "UploadId": upload_id}
            if marker is not None:
                kwargs["PartNumberMarker"] = marker
            try:
                response = await self.client.list_parts(**kwargs)
            except (ClientError, BotoCoreError) as exc:
                raise TransportError.from_backend("list_upload_parts", exc) from exc

            for item in response.get("Parts", []):
                parts.append(RemotePart(part_number=int(item["PartNumber"]), etag=item["ETag"]))

            if not response.get("IsTruncated"):
                break
            next_marker = response.get("NextPartNumberMarker")
            # part number markers only move forward
            if next_marker is None or int(next_marker) <= (marker or 0):
                raise TransportError(
                    "list_upload_parts", f"Part listing for {key} did not advance"
                )
            marker = int(next_marker)
        return parts

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[RemotePart],
    ) -> None:
        manifest = {
            "Parts": [{"ETag": p.etag, "PartNumber": p.part_number} for p in parts]
        }
        try:
            await self.client.complete_multipart_upload(
                Bucket=bucket, Key=key, UploadId=upload_id, MultipartUpload=manifest
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("complete_multipart_upload", exc) from exc

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        try:
            await self.client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=upload_id)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("abort_multipart_upload", exc) from exc

    async def delete_object(self, bucket: str, key: str) -> None:
        try:
            await self.client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            raise TransportError.from_backend("delete_object", exc) from exc
