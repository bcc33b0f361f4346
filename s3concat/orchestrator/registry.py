"""Upload session registry - one session per target key for the whole run."""
from typing import Dict, Iterator, List, Optional, Tuple

from ..models import SessionState, UploadSession


class SessionRegistry:
    """
    Process-scoped table of upload sessions indexed by target key.

    Sessions keep their insertion (first-discovery) order and are never
    evicted during a run.
    """

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._owners: Dict[str, str] = {}  # source key -> target key

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[UploadSession]:
        return iter(list(self._sessions.values()))

    def __contains__(self, target_key: str) -> bool:
        return target_key in self._sessions

    def get(self, target_key: str) -> Optional[UploadSession]:
        return self._sessions.get(target_key)

    def owner_of(self, source_key: str) -> Optional[str]:
        return self._owners.get(source_key)

    def register(self, source_key: str, target_key: str) -> Tuple[UploadSession, int]:
        """
        Add a source to the session for its target, creating it lazily.

        Returns:
            (session, reserved part number)
        """
        owner = self._owners.get(source_key)
        if owner is not None:
            raise ValueError(f"{source_key} already belongs to {owner}")

        session = self._sessions.get(target_key)
        if session is None:
            session = UploadSession(target_key=target_key)
            self._sessions[target_key] = session

        part_number = session.reserve_part(source_key)
        self._owners[source_key] = target_key
        return session, part_number

    def in_state(self, *states: SessionState) -> List[UploadSession]:
        return [s for s in self._sessions.values() if s.state in states]

    def non_terminal(self) -> List[UploadSession]:
        return [s for s in self._sessions.values() if not s.state.terminal]
