"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator only talks to storage through IStorageGateway, so the
backend can be swapped (aioboto3, a fake in tests).
"""
from typing import List, Optional, Protocol, Sequence, runtime_checkable

from .models import ListingPage, RemotePart


@runtime_checkable
class IStorageGateway(Protocol):
    """Interface for the object store operations used by a concatenation run."""

    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        continuation_token: Optional[str] = None,
    ) -> ListingPage:
        """List one page of objects."""
        ...

    async def create_multipart_upload(self, bucket: str, key: str) -> str:
        """Create a multipart upload and return its upload id."""
        ...

    async def copy_object_part(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        part_number: int,
        source_key: str,
    ) -> str:
        """Copy an existing object into one part slot; returns the part ETag."""
        ...

    async def list_upload_parts(self, bucket: str, key: str, upload_id: str) -> List[RemotePart]:
        """List every part recorded for an upload."""
        ...

    async def complete_multipart_upload(
        self,
        bucket: str,
        key: str,
        upload_id: str,
        parts: Sequence[RemotePart],
    ) -> None:
        """Complete an upload from its part manifest."""
        ...

    async def abort_multipart_upload(self, bucket: str, key: str, upload_id: str) -> None:
        """Abort an upload."""
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete an object."""
        ...
