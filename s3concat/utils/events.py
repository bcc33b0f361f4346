from dataclasses import dataclass
from typing import Dict, List, Callable
import asyncio
import inspect
import logging
logger = logging.getLogger(__name__)


class ConcatEvent:
    """Event names emitted by a concatenation run."""
    MATCH = "match"              # (source_key, target_key, part_number)
    SESSION_OPEN = "session_open"  # (session)
    PART_COPIED = "part_copied"  # (PartProgress)
    COMPLETING = "completing"    # (session)
    COMPLETED = "completed"      # (session)
    ABORTING = "aborting"        # (session)
    ABORTED = "aborted"          # (session)
    REMOVING = "removing"        # (source_key)
    REMOVED = "removed"          # (source_key)
    ERROR = "error"              # (exception)


@dataclass
class PartProgress:
    """Progress information for a single part-copy."""
    target_key: str
    source_key: str
    part_number: int
    total_parts: int
    etag: str = ""


class EventEmitter:
    """Simple event emitter for run events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock = asyncio.Lock()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners."""
        if event_name not in self._listeners:
            return

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
                try:
                    if inspect.iscoroutinefunction(callback):
                        await callback(*args, **kwargs)
                    else:
                        callback(*args, **kwargs)
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")
