"""Services for s3concat."""
from .storage import S3StorageGateway

__all__ = [
    "S3StorageGateway",
]
