"""Core orchestrator - coordinates a concatenation run."""
from typing import Callable, List, Optional, Set, Tuple
import asyncio
import logging

from ..exceptions import ConcatError, RollbackError, SizeConstraintError, TransportError
from ..models import ConcatConfig, ConcatReport, SessionState, UploadSession
from ..protocols import IStorageGateway
from ..utils.events import ConcatEvent, EventEmitter

from .cleanup import CleanupCoordinator
from .matcher import PatternMatcher
from .registry import SessionRegistry
from .upload import SessionUploader

logger = logging.getLogger(__name__)

# (session, reserved part number, source key) in discovery order
PlannedPart = Tuple[UploadSession, int, str]


class ConcatOrchestrator:
    """
    Concatenates objects remotely using injected services.

    A run is:
    1. Discovery - one exhaustive listing pass, grouping matches into
       Pending sessions with reserved part numbers
    2. Execution - open each session and copy its parts in discovery order
    3. Finalization - complete every Open session, aborting on failure
    4. Cleanup - delete the sources of Completed sessions (optional)

    Any error in 1-2 is fatal: in-flight copies are settled, every
    non-terminal session is aborted and the error is reported.

    Usage:
        matcher = PatternMatcher(r"logs/(\\d{4}-\\d{2}-\\d{2})\\.part\\d+", "logs/$1.merged")
        async with S3StorageGateway() as gateway:
            orchestrator = ConcatOrchestrator(gateway, "bucket", matcher, prefix="logs")
            orchestrator.on(ConcatEvent.MATCH, print)
            report = await orchestrator.run()
    """

    def __init__(
        self,
        gateway: IStorageGateway,
        bucket: str,
        matcher: PatternMatcher,
        prefix: Optional[str] = None,
        config: Optional[ConcatConfig] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            gateway: Storage gateway
            bucket: Bucket to work within
            matcher: Compiled source pattern and target template
            prefix: Optional listing prefix
            config: Run configuration
        """
        self._gateway = gateway
        self._bucket = bucket
        self._prefix = prefix or None
        self._matcher = matcher
        self._config = config or ConcatConfig()

        self._events = EventEmitter()
        self._registry = SessionRegistry()
        self._uploader = SessionUploader(gateway, bucket, self._events)
        self._cleanup = CleanupCoordinator(gateway, bucket, self._events)
        self._copy_tasks: List[asyncio.Task] = []

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    def on(self, event_name: str, callback: Callable) -> None:
        """Subscribe to a ConcatEvent."""
        self._events.on(event_name, callback)

    async def run(self) -> ConcatReport:
        """
        Execute the run.

        Returns:
            ConcatReport; ``report.error`` holds the fatal error, if any
        """
        try:
            plan = await self._discover()
            if self._config.dry_run:
                logger.info("Dry run: %d targets planned", len(self._registry))
                return ConcatReport(sessions=list(self._registry), dry_run=True)
            await self._execute(plan)
        except ConcatError as exc:
            logger.error("Concatenation failed: %s", exc)
            await self._events.emit(ConcatEvent.ERROR, exc)
            rollback_errors = await self._abort_all()
            return ConcatReport(
                sessions=list(self._registry),
                rollback_errors=rollback_errors,
                error=exc,
                dry_run=self._config.dry_run,
            )
        except Exception:
            await self._abort_all()
            raise

        rollback_errors = await self._finalize()

        deleted: List[str] = []
        if self._config.cleanup:
            deleted, cleanup_errors = await self._cleanup.cleanup(self._registry)
            rollback_errors.extend(cleanup_errors)

        return ConcatReport(
            sessions=list(self._registry),
            deleted_keys=deleted,
            rollback_errors=rollback_errors,
        )

    async def _discover(self) -> List[PlannedPart]:
        """Walk the listing once and group matches into Pending sessions."""
        plan: List[PlannedPart] = []
        token: Optional[str] = None
        seen_tokens: Set[str] = set()

        while True:
            page = await self._gateway.list_objects(self._bucket, self._prefix, token)

            for entry in page.entries:
                if not self._matcher.matches(entry.key):
                    continue

                # S3 rejects part-copies below the minimum part size
                if entry.size < self._config.min_part_size:
                    raise SizeConstraintError(entry.key, entry.size, self._config.min_part_size)

                target = self._matcher.resolve(entry.key)
                if target is None:
                    logger.debug("Skipping %s: resolves to itself", entry.key)
                    continue

                session, part_number = self._registry.register(entry.key, target)
                plan.append((session, part_number, entry.key))
                logger.debug("Planned %s -> %s part %d", entry.key, target, part_number)
                await self._events.emit(ConcatEvent.MATCH, entry.key, target, part_number)

            if page.exhausted:
                break
            if page.next_token in seen_tokens:
                raise TransportError(
                    "list_objects", f"Listing did not advance past token {page.next_token!r}"
                )
            seen_tokens.add(page.next_token)
            token = page.next_token

        logger.info(
            "Discovered %d sources for %d targets", len(plan), len(self._registry)
        )
        return plan

    async def _execute(self, plan: List[PlannedPart]) -> None:
        """Open sessions and copy parts, at most max_parallel copies in flight."""
        semaphore = asyncio.Semaphore(self._config.max_parallel)

        for session, part_number, source_key in plan:
            await semaphore.acquire()
            try:
                self._raise_failed_copy()
                if session.state is SessionState.PENDING:
                    await self._uploader.open(session)
            except BaseException:
                semaphore.release()
                raise

            self._copy_tasks.append(
                asyncio.create_task(self._copy(semaphore, session, part_number, source_key))
            )

        # Every copy settles before any session is finalized
        results = await asyncio.gather(*self._copy_tasks, return_exceptions=True)
        self._copy_tasks.clear()
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _copy(
        self,
        semaphore: asyncio.Semaphore,
        session: UploadSession,
        part_number: int,
        source_key: str,
    ) -> str:
        try:
            return await self._uploader.copy_part(session, part_number, source_key)
        finally:
            semaphore.release()

    def _raise_failed_copy(self) -> None:
        for task in self._copy_tasks:
            if task.done() and not task.cancelled() and task.exception() is not None:
                raise task.exception()

    async def _settle_copies(self) -> None:
        """Cancel copies still in flight and wait for all of them to settle."""
        for task in self._copy_tasks:
            if not task.done():
                task.cancel()
        if self._copy_tasks:
            await asyncio.gather(*self._copy_tasks, return_exceptions=True)
        self._copy_tasks.clear()

    async def _abort_all(self) -> List[RollbackError]:
        """Abort every non-terminal session (fatal path)."""
        await self._settle_copies()

        errors: List[RollbackError] = []
        for session in self._registry.non_terminal():
            error = await self._uploader.abort(session)
            if error is not None:
                errors.append(error)
        return errors

    async def _finalize(self) -> List[RollbackError]:
        """Complete every Open session; failures only affect their own session."""
        errors: List[RollbackError] = []
        for session in self._registry.in_state(SessionState.OPEN):
            error = await self._uploader.finalize(session)
            if error is not None:
                errors.append(error)

        logger.info(
            "Finalized %d sessions (%d aborted)",
            len(self._registry.in_state(SessionState.COMPLETED, SessionState.ABORTED)),
            len(self._registry.in_state(SessionState.ABORTED)),
        )
        return errors
