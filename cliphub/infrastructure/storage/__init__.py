"""
Object storage integration for clip media.

Supports R2 (Cloudflare) and S3 (AWS) via S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    GrantRejectedError,
    MockStorageClient,
    R2StorageClient,
    StorageConfig,
    StorageError,
    create_storage_client,
)
from .grants import AccessGrantIssuer

__all__ = [
    "AccessGrantIssuer",
    "GrantRejectedError",
    "MockStorageClient",
    "R2StorageClient",
    "StorageConfig",
    "StorageError",
    "create_storage_client",
]
