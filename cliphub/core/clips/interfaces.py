"""
Interfaces the clip services depend on.

Using Protocols here means the lifecycle controller doesn't know or care
whether records live in Snowflake or in memory, or whether bytes live in
R2, S3 or a mock. Infrastructure provides the implementations.
"""

from datetime import datetime
from typing import Optional, Protocol

from .models import AccessGrant, Clip, GrantPermission, StoredObject


class ClipRepository(Protocol):
    """
    Keyed document store for clip records, partitioned by owner id.

    Every point operation needs both the clip id and the owner id, so
    cross-owner point access is impossible through this interface.
    """

    def create(self, clip: Clip) -> Clip:
        """Insert a new record. ConflictError if (id, owner_id) exists."""
        ...

    def get(self, clip_id: str, owner_id: str) -> Clip:
        """Point read. ClipNotFoundError if absent."""
        ...

    def replace(self, clip: Clip) -> Clip:
        """
        Conditional replace.

        Succeeds only if the stored version equals clip.version; returns
        the stored record with the bumped version. ClipNotFoundError if
        absent, ConflictError on version mismatch.
        """
        ...

    def delete(self, clip_id: str, owner_id: str) -> bool:
        """Remove a record. Returns whether one was removed."""
        ...

    def scan(self, owner_id: Optional[str] = None) -> list[Clip]:
        """Unordered scan, optionally restricted to one owner."""
        ...


class ObjectStore(Protocol):
    """Flat namespace of named blobs inside one bucket."""

    @property
    def bucket_name(self) -> str: ...

    async def ensure_container(self) -> None:
        """Create the bucket if it is absent. Idempotent."""
        ...

    async def delete_if_exists(self, object_name: str) -> bool:
        """Delete an object. Returns False if it was already absent."""
        ...

    async def exists(self, object_name: str) -> bool:
        ...

    async def list_objects(self, prefix: str = "") -> list[StoredObject]:
        ...

    def presign(
        self,
        object_name: str,
        permission: GrantPermission,
        valid_from: datetime,
        valid_until: datetime,
        issued_at: Optional[datetime] = None,
    ) -> str:
        """
        Sign a URL binding the object, permission and validity window.

        issued_at is the issuer's notion of now; stores that sign a
        relative expiry count from it.
        """
        ...


class GrantIssuer(Protocol):
    """Mints access grants for single objects."""

    def issue(
        self,
        object_name: str,
        permission: GrantPermission,
        ttl_minutes: int,
    ) -> AccessGrant:
        ...
