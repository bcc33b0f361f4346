"""
s3concat - Concatenate S3 objects remotely using flexible patterns.

Objects are never downloaded: each group of matching sources is assembled
server-side by copying the sources into the parts of a multipart upload.

Usage:
    from s3concat import ConcatOrchestrator, PatternMatcher, S3StorageGateway

    matcher = PatternMatcher(r"logs/(\\d{4}-\\d{2}-\\d{2})\\.part\\d+", "logs/$1.merged")
    async with S3StorageGateway() as gateway:
        orchestrator = ConcatOrchestrator(gateway, "my-bucket", matcher, prefix="logs")
        report = await orchestrator.run()

    for target, sources in report.grouping():
        print(target, sources)
"""
from .orchestrator import ConcatOrchestrator, PatternMatcher, SessionRegistry
from .models import (
    ConcatConfig,
    ConcatReport,
    ListingPage,
    RemotePart,
    SessionState,
    SourceObject,
    UploadSession,
)
from .exceptions import (
    ConcatError,
    ConfigurationError,
    RollbackError,
    SizeConstraintError,
    TransportError,
)
from .services import S3StorageGateway

__version__ = "0.3.0"
__all__ = [
    # Main
    "ConcatOrchestrator",
    "PatternMatcher",
    "SessionRegistry",
    # Models
    "ConcatConfig",
    "ConcatReport",
    "ListingPage",
    "RemotePart",
    "SessionState",
    "SourceObject",
    "UploadSession",
    # Errors
    "ConcatError",
    "ConfigurationError",
    "RollbackError",
    "SizeConstraintError",
    "TransportError",
    # Services
    "S3StorageGateway",
]
