"""
Models for s3concat.

Immutable dataclasses for listing data and configuration; the mutable
UploadSession record is owned by the orchestrator.
"""
from dataclasses import dataclass, field
from typing import Optional, List, Tuple
from enum import Enum

# S3 rejects part-copies below this size (except for the last part)
MIN_PART_SIZE = 5_000_000


@dataclass(frozen=True)
class SourceObject:
    """One listed object eligible for concatenation."""
    key: str
    size: int


@dataclass(frozen=True)
class ListingPage:
    """
    One page of an object listing.

    ``next_token`` is None on the last page; an empty page that still carries
    a token is a valid intermediate page.
    """
    entries: Tuple[SourceObject, ...] = ()
    next_token: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.next_token is None


@dataclass(frozen=True)
class RemotePart:
    """A part recorded by the backend for a multipart upload."""
    part_number: int
    etag: str


class SessionState(Enum):
    """Lifecycle state of an upload session."""
    PENDING = "pending"
    OPEN = "open"
    COMPLETING = "completing"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


# Allowed forward transitions; terminal states have none
_TRANSITIONS = {
    SessionState.PENDING: {SessionState.OPEN, SessionState.ABORTED},
    SessionState.OPEN: {SessionState.COMPLETING, SessionState.ABORTED},
    SessionState.COMPLETING: {SessionState.COMPLETED, SessionState.ABORTED},
    SessionState.COMPLETED: set(),
    SessionState.ABORTED: set(),
}


@dataclass
class UploadSession:
    """One target object's multipart upload and the sources feeding it."""
    target_key: str
    source_keys: List[str] = field(default_factory=list)
    upload_id: Optional[str] = None
    state: SessionState = SessionState.PENDING

    @property
    def part_count(self) -> int:
        return len(self.source_keys)

    def reserve_part(self, source_key: str) -> int:
        """Append a source and return its part number (1-based, gapless)."""
        if self.state is not SessionState.PENDING:
            raise RuntimeError(
                f"Cannot add {source_key} to {self.target_key} in state {self.state.value}"
            )
        self.source_keys.append(source_key)
        return len(self.source_keys)

    def parts(self) -> List[Tuple[int, str]]:
        """(part_number, source_key) pairs in part order."""
        return list(enumerate(self.source_keys, 1))

    def transition(self, state: SessionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid transition for {self.target_key}: "
                f"{self.state.value} -> {state.value}"
            )
        self.state = state


@dataclass(frozen=True)
class ConcatConfig:
    """Immutable configuration for a concatenation run."""
    cleanup: bool = False
    dry_run: bool = False
    max_parallel: int = 1
    min_part_size: int = MIN_PART_SIZE

    def __post_init__(self):
        if self.max_parallel < 1:
            raise ValueError("max_parallel must be at least 1")


@dataclass
class ConcatReport:
    """Result of a concatenation run."""
    sessions: List[UploadSession]
    deleted_keys: List[str] = field(default_factory=list)
    rollback_errors: List[Exception] = field(default_factory=list)
    error: Optional[Exception] = None
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def completed(self) -> List[UploadSession]:
        return [s for s in self.sessions if s.state is SessionState.COMPLETED]

    @property
    def aborted(self) -> List[UploadSession]:
        return [s for s in self.sessions if s.state is SessionState.ABORTED]

    def grouping(self) -> List[Tuple[str, List[str]]]:
        """(target_key, source_keys) pairs in first-discovery order."""
        return [(s.target_key, list(s.source_keys)) for s in self.sessions]
