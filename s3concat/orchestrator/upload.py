"""Multipart upload lifecycle for a single session."""
from typing import List, Optional
import logging

from ..exceptions import ConcatError, RollbackError
from ..models import RemotePart, SessionState, UploadSession
from ..protocols import IStorageGateway
from ..utils.events import ConcatEvent, EventEmitter, PartProgress

logger = logging.getLogger(__name__)


class SessionUploader:
    """
    Drives UploadSessions through create -> copy parts -> complete/abort.

    Remote failures from open/copy propagate (they are fatal to the run);
    failures during finalization are scoped to the session and end in abort.
    """

    def __init__(self, gateway: IStorageGateway, bucket: str, events: EventEmitter):
        """
        Initialize session uploader.

        Args:
            gateway: Storage gateway
            bucket: Bucket holding both sources and targets
            events: Emitter for announcements
        """
        self._gateway = gateway
        self._bucket = bucket
        self._events = events

    async def open(self, session: UploadSession) -> None:
        """Create the remote multipart upload (Pending -> Open)."""
        upload_id = await self._gateway.create_multipart_upload(self._bucket, session.target_key)
        session.upload_id = upload_id
        session.transition(SessionState.OPEN)
        logger.info("Opened upload %s for %s", upload_id, session.target_key)
        await self._events.emit(ConcatEvent.SESSION_OPEN, session)

    async def copy_part(self, session: UploadSession, part_number: int, source_key: str) -> str:
        """Copy one source into its reserved part slot."""
        if session.state is not SessionState.OPEN:
            raise RuntimeError(f"Session {session.target_key} is not open")
        etag = await self._gateway.copy_object_part(
            self._bucket,
            session.target_key,
            session.upload_id,
            part_number,
            source_key,
        )
        logger.debug(
            "Copied %s into %s part %d (%s)", source_key, session.target_key, part_number, etag
        )
        await self._events.emit(
            ConcatEvent.PART_COPIED,
            PartProgress(
                target_key=session.target_key,
                source_key=source_key,
                part_number=part_number,
                total_parts=session.part_count,
                etag=etag,
            ),
        )
        return etag

    async def finalize(self, session: UploadSession) -> Optional[RollbackError]:
        """
        Complete an open session, aborting it on any failure.

        Returns:
            RollbackError if the fallback abort itself failed, else None
        """
        session.transition(SessionState.COMPLETING)
        await self._events.emit(ConcatEvent.COMPLETING, session)

        try:
            parts = await self._gateway.list_upload_parts(
                self._bucket, session.target_key, session.upload_id
            )
        except ConcatError as exc:
            logger.error("Unable to list pending parts for %s: %s", session.upload_id, exc)
            await self._events.emit(ConcatEvent.ERROR, exc)
            return await self.abort(session)

        manifest = self._build_manifest(session, parts)
        try:
            await self._gateway.complete_multipart_upload(
                self._bucket, session.target_key, session.upload_id, manifest
            )
        except ConcatError as exc:
            logger.error("Unable to complete %s: %s", session.target_key, exc)
            await self._events.emit(ConcatEvent.ERROR, exc)
            return await self.abort(session)

        session.transition(SessionState.COMPLETED)
        logger.info("Completed %s from %d parts", session.target_key, len(manifest))
        await self._events.emit(ConcatEvent.COMPLETED, session)
        return None

    @staticmethod
    def _build_manifest(session: UploadSession, parts: List[RemotePart]) -> List[RemotePart]:
        # Remote listing is authoritative for the manifest
        if len(parts) != session.part_count:
            logger.warning(
                "Remote part listing for %s has %d parts, %d sources were copied",
                session.target_key, len(parts), session.part_count,
            )
        return sorted(parts, key=lambda p: p.part_number)

    async def abort(self, session: UploadSession) -> Optional[RollbackError]:
        """
        Abort a session (single attempt). The session ends Aborted either way.

        Returns:
            RollbackError if the remote abort failed, else None
        """
        rollback_error = None
        if session.upload_id is not None:
            await self._events.emit(ConcatEvent.ABORTING, session)
            try:
                await self._gateway.abort_multipart_upload(
                    self._bucket, session.target_key, session.upload_id
                )
            except ConcatError as exc:
                rollback_error = RollbackError("abort", session.upload_id, exc)
                logger.error(str(rollback_error))
                await self._events.emit(ConcatEvent.ERROR, rollback_error)

        session.transition(SessionState.ABORTED)
        await self._events.emit(ConcatEvent.ABORTED, session)
        return rollback_error
