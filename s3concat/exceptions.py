"""Error taxonomy for s3concat runs."""
from typing import Optional

from .utils.error_decoder import decode_error_message


class ConcatError(Exception):
    """Base exception for concatenation runs."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ConfigurationError(ConcatError):
    """Invalid pattern, bucket or missing argument. Raised before any remote call."""
    pass


class SizeConstraintError(ConcatError):
    """A matched source is smaller than the backend's minimum part size."""

    def __init__(self, key: str, size: int, minimum: int):
        super().__init__(
            f"Unable to concat files below {minimum // 1_000_000}MB: {key} ({size} bytes)"
        )
        self.key = key
        self.size = size
        self.minimum = minimum


class TransportError(ConcatError):
    """A storage gateway call failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation

    @classmethod
    def from_backend(cls, operation: str, exc: BaseException) -> "TransportError":
        """Wrap a backend exception, surfacing its structured message when present."""
        return cls(operation, decode_error_message(exc))


class RollbackError(ConcatError):
    """
    Failure while aborting an upload or deleting a consumed source.

    Never raised out of a run: collected into the report and logged.
    """

    def __init__(self, action: str, key: str, cause: Optional[BaseException] = None):
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Unable to {action} {key}{detail}")
        self.action = action
        self.key = key
        self.cause = cause
