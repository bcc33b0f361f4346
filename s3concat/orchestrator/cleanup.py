"""Cleanup of consumed sources after successful concatenation."""
from typing import Iterable, List, Tuple
import logging

from ..exceptions import ConcatError, RollbackError
from ..models import SessionState, UploadSession
from ..protocols import IStorageGateway
from ..utils.events import ConcatEvent, EventEmitter

logger = logging.getLogger(__name__)


class CleanupCoordinator:
    """Deletes the sources of completed sessions, best effort, one attempt per key."""

    def __init__(self, gateway: IStorageGateway, bucket: str, events: EventEmitter):
        self._gateway = gateway
        self._bucket = bucket
        self._events = events

    async def cleanup(
        self, sessions: Iterable[UploadSession]
    ) -> Tuple[List[str], List[RollbackError]]:
        """
        Delete sources belonging to Completed sessions.

        Returns:
            (deleted keys, per-key RollbackErrors)
        """
        deleted: List[str] = []
        errors: List[RollbackError] = []

        for session in sessions:
            if session.state is not SessionState.COMPLETED:
                continue
            for key in session.source_keys:
                await self._events.emit(ConcatEvent.REMOVING, key)
                try:
                    await self._gateway.delete_object(self._bucket, key)
                except ConcatError as exc:
                    error = RollbackError("remove", key, exc)
                    logger.error(str(error))
                    errors.append(error)
                    await self._events.emit(ConcatEvent.ERROR, error)
                    continue
                deleted.append(key)
                await self._events.emit(ConcatEvent.REMOVED, key)

        if deleted:
            logger.info("Removed %d source objects", len(deleted))
        return deleted, errors
