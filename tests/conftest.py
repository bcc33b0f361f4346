"""Pytest configuration and shared fixtures."""
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from s3concat.exceptions import TransportError
from s3concat.models import ListingPage, RemotePart, SourceObject

MB = 1_000_000

MUTATIONS = {
    "create_multipart_upload",
    "copy_object_part",
    "complete_multipart_upload",
    "abort_multipart_upload",
    "delete_object",
}


class FakeGateway:
    """
    In-memory storage gateway recording every call.

    ``fail`` maps an operation name to a set of keys (target or source keys)
    for which that operation raises TransportError; the key ``"*"`` fails
    every call of that operation.
    """

    def __init__(self, objects: Sequence[Tuple[str, int]], page_size: int = 1000):
        self.objects: Dict[str, int] = dict(objects)
        self.page_size = page_size
        self.calls: List[Tuple] = []
        self.fail: Dict[str, Set[str]] = {}
        self.uploads: Dict[str, Dict] = {}
        self.completed: Dict[str, List[RemotePart]] = {}
        self._next_id = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return None

    def _check(self, operation: str, key: str) -> None:
        keys = self.fail.get(operation, set())
        if key in keys or "*" in keys:
            raise TransportError(operation, f"{operation} failed for {key}")

    @property
    def mutations(self) -> List[Tuple]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def called(self, operation: str) -> List[Tuple]:
        return [call for call in self.calls if call[0] == operation]

    async def list_objects(self, bucket, prefix=None, continuation_token=None):
        self.calls.append(("list_objects", bucket, prefix, continuation_token))
        self._check("list_objects", prefix or "")
        keys = sorted(k for k in self.objects if not prefix or k.startswith(prefix))
        start = int(continuation_token or 0)
        chunk = keys[start:start + self.page_size]
        end = start + self.page_size
        next_token = str(end) if end < len(keys) else None
        entries = tuple(SourceObject(key=k, size=self.objects[k]) for k in chunk)
        return ListingPage(entries=entries, next_token=next_token)

    async def create_multipart_upload(self, bucket, key):
        self.calls.append(("create_multipart_upload", bucket, key))
        self._check("create_multipart_upload", key)
        self._next_id += 1
        upload_id = f"upload-{self._next_id}"
        self.uploads[upload_id] = {"key": key, "parts": {}}
        return upload_id

    async def copy_object_part(self, bucket, key, upload_id, part_number, source_key):
        self.calls.append(("copy_object_part", bucket, key, upload_id, part_number, source_key))
        self._check("copy_object_part", source_key)
        etag = f'"etag-{source_key}"'
        self.uploads[upload_id]["parts"][part_number] = (source_key, etag)
        return etag

    async def list_upload_parts(self, bucket, key, upload_id):
        self.calls.append(("list_upload_parts", bucket, key, upload_id))
        self._check("list_upload_parts", key)
        parts = self.uploads[upload_id]["parts"]
        return [RemotePart(part_number=n, etag=parts[n][1]) for n in sorted(parts, reverse=True)]

    async def complete_multipart_upload(self, bucket, key, upload_id, parts):
        self.calls.append(("complete_multipart_upload", bucket, key, upload_id, list(parts)))
        self._check("complete_multipart_upload", key)
        self.completed[key] = list(parts)
        self.objects[key] = sum(
            self.objects[self.uploads[upload_id]["parts"][p.part_number][0]] for p in parts
        )

    async def abort_multipart_upload(self, bucket, key, upload_id):
        self.calls.append(("abort_multipart_upload", bucket, key, upload_id))
        self._check("abort_multipart_upload", key)
        self.uploads.pop(upload_id, None)

    async def delete_object(self, bucket, key):
        self.calls.append(("delete_object", bucket, key))
        self._check("delete_object", key)
        self.objects.pop(key, None)


class ScriptedListingGateway(FakeGateway):
    """
    FakeGateway whose listing replays fixed pages.

    ``pages`` is a sequence of (keys, next_token) pairs returned in order,
    whatever token is asked for. Every listed key is 6MB.
    """

    def __init__(self, pages: Sequence[Tuple[Sequence[str], Optional[str]]]):
        super().__init__([(key, 6 * MB) for keys, _ in pages for key in keys])
        self._pages = list(pages)

    async def list_objects(self, bucket, prefix=None, continuation_token=None):
        self.calls.append(("list_objects", bucket, prefix, continuation_token))
        keys, next_token = self._pages[len(self.called("list_objects")) - 1]
        entries = tuple(SourceObject(key=k, size=self.objects[k]) for k in keys)
        return ListingPage(entries=entries, next_token=next_token)


@pytest.fixture
def log_objects():
    return [
        ("logs/2024-01-01.part1", 6 * MB),
        ("logs/2024-01-01.part2", 6 * MB),
        ("logs/2024-01-02.part1", 6 * MB),
    ]


@pytest.fixture
def log_pattern():
    return r"logs/(\d{4}-\d{2}-\d{2})\.part\d+", "logs/$1.merged"


@pytest.fixture
def gateway(log_objects):
    return FakeGateway(log_objects)


@pytest.fixture
def make_gateway():
    """Factory for FakeGateway instances with custom bucket contents."""
    return FakeGateway


@pytest.fixture
def scripted_gateway():
    """Factory for gateways replaying a fixed sequence of listing pages."""
    return ScriptedListingGateway
