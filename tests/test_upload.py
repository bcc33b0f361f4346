"""Tests for the session lifecycle and cleanup coordinator."""
from unittest.mock import AsyncMock

import pytest

from s3concat.exceptions import RollbackError, TransportError
from s3concat.models import RemotePart, SessionState, UploadSession
from s3concat.orchestrator.cleanup import CleanupCoordinator
from s3concat.orchestrator.upload import SessionUploader
from s3concat.utils.events import ConcatEvent, EventEmitter


def _session(*sources, state=SessionState.PENDING, upload_id=None):
    session = UploadSession(target_key="target")
    for key in sources:
        session.reserve_part(key)
    session.upload_id = upload_id
    session.state = state
    return session


@pytest.fixture
def gateway():
    return AsyncMock()


@pytest.fixture
def uploader(gateway):
    return SessionUploader(gateway, "bucket", EventEmitter())


class TestSessionUploader:
    @pytest.mark.asyncio
    async def test_open_binds_upload_id(self, uploader, gateway):
        gateway.create_multipart_upload.return_value = "u-1"
        session = _session("a")

        await uploader.open(session)

        assert session.upload_id == "u-1"
        assert session.state is SessionState.OPEN
        gateway.create_multipart_upload.assert_awaited_once_with("bucket", "target")

    @pytest.mark.asyncio
    async def test_open_failure_propagates(self, uploader, gateway):
        gateway.create_multipart_upload.side_effect = TransportError("create_multipart_upload", "x")
        session = _session("a")

        with pytest.raises(TransportError):
            await uploader.open(session)
        assert session.state is SessionState.PENDING

    @pytest.mark.asyncio
    async def test_copy_requires_open_session(self, uploader):
        with pytest.raises(RuntimeError, match="not open"):
            await uploader.copy_part(_session("a"), 1, "a")

    @pytest.mark.asyncio
    async def test_copy_part(self, uploader, gateway):
        gateway.copy_object_part.return_value = '"e"'
        session = _session("a", "b", state=SessionState.OPEN, upload_id="u-1")

        assert await uploader.copy_part(session, 2, "b") == '"e"'
        gateway.copy_object_part.assert_awaited_once_with("bucket", "target", "u-1", 2, "b")

    @pytest.mark.asyncio
    async def test_finalize_completes(self, uploader, gateway):
        gateway.list_upload_parts.return_value = [RemotePart(2, "b"), RemotePart(1, "a")]
        session = _session("a", "b", state=SessionState.OPEN, upload_id="u-1")

        assert await uploader.finalize(session) is None

        assert session.state is SessionState.COMPLETED
        gateway.complete_multipart_upload.assert_awaited_once_with(
            "bucket", "target", "u-1", [RemotePart(1, "a"), RemotePart(2, "b")]
        )
        gateway.abort_multipart_upload.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_finalize_trusts_remote_listing(self, uploader, gateway):
        gateway.list_upload_parts.return_value = [RemotePart(1, "a")]
        session = _session("a", "b", state=SessionState.OPEN, upload_id="u-1")

        await uploader.finalize(session)

        manifest = gateway.complete_multipart_upload.await_args.args[3]
        assert manifest == [RemotePart(1, "a")]
        assert session.state is SessionState.COMPLETED

    @pytest.mark.asyncio
    async def test_finalize_aborts_on_complete_failure(self, uploader, gateway):
        gateway.list_upload_parts.return_value = [RemotePart(1, "a")]
        gateway.complete_multipart_upload.side_effect = TransportError("complete_multipart_upload", "x")
        session = _session("a", state=SessionState.OPEN, upload_id="u-1")

        assert await uploader.finalize(session) is None

        assert session.state is SessionState.ABORTED
        gateway.abort_multipart_upload.assert_awaited_once_with("bucket", "target", "u-1")

    @pytest.mark.asyncio
    async def test_failed_abort_still_ends_aborted(self, uploader, gateway):
        gateway.list_upload_parts.side_effect = TransportError("list_upload_parts", "x")
        gateway.abort_multipart_upload.side_effect = TransportError("abort_multipart_upload", "denied")
        session = _session("a", state=SessionState.OPEN, upload_id="u-1")

        error = await uploader.finalize(session)

        assert isinstance(error, RollbackError)
        assert session.state is SessionState.ABORTED
        assert gateway.abort_multipart_upload.await_count == 1

    @pytest.mark.asyncio
    async def test_abort_pending_session_makes_no_call(self, uploader, gateway):
        session = _session("a")

        assert await uploader.abort(session) is None

        assert session.state is SessionState.ABORTED
        gateway.abort_multipart_upload.assert_not_awaited()


class TestCleanupCoordinator:
    @pytest.mark.asyncio
    async def test_only_completed_sessions_are_cleaned(self, gateway):
        events = EventEmitter()
        removing = []
        events.on(ConcatEvent.REMOVING, removing.append)
        coordinator = CleanupCoordinator(gateway, "bucket", events)
        done = _session("a1", "a2", state=SessionState.COMPLETED, upload_id="u-1")
        failed = _session("b1", state=SessionState.ABORTED, upload_id="u-2")

        deleted, errors = await coordinator.cleanup([done, failed])

        assert deleted == ["a1", "a2"]
        assert errors == []
        assert removing == ["a1", "a2"]
        assert [c.args for c in gateway.delete_object.await_args_list] == [
            ("bucket", "a1"),
            ("bucket", "a2"),
        ]

    @pytest.mark.asyncio
    async def test_delete_failures_are_per_key(self, gateway):
        gateway.delete_object.side_effect = [TransportError("delete_object", "denied"), None]
        coordinator = CleanupCoordinator(gateway, "bucket", EventEmitter())
        done = _session("a1", "a2", state=SessionState.COMPLETED, upload_id="u-1")

        deleted, errors = await coordinator.cleanup([done])

        assert deleted == ["a2"]
        assert [e.key for e in errors] == ["a1"]
        assert gateway.delete_object.await_count == 2
