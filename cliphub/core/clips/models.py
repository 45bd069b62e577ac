"""
Domain models for clips and access grants.

These models have no dependencies on FastAPI, Snowflake or boto3.
The repository translates them to rows, the API layer translates them
to JSON; the core only ever sees these dataclasses.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from ..errors import ValidationError

DEFAULT_GENRE = "unknown"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ClipStatus(Enum):
    """
    Upload lifecycle of a clip.

    A clip starts in PENDING_UPLOAD: the record exists but nobody has
    confirmed that bytes were written to the object store.
    """
    PENDING_UPLOAD = "pending-upload"
    UPLOADED = "uploaded"
    READY = "ready"
    FAILED = "failed"

    def can_transition_to(self, target: "ClipStatus") -> bool:
        if target is self:
            return True
        return target in _ALLOWED_TRANSITIONS[self]


_ALLOWED_TRANSITIONS: dict[ClipStatus, frozenset[ClipStatus]] = {
    ClipStatus.PENDING_UPLOAD: frozenset({ClipStatus.UPLOADED, ClipStatus.FAILED}),
    ClipStatus.UPLOADED: frozenset({ClipStatus.READY, ClipStatus.FAILED}),
    ClipStatus.READY: frozenset({ClipStatus.FAILED}),
    ClipStatus.FAILED: frozenset(),
}


def parse_status(value: str) -> ClipStatus:
    """Parse a wire status string, rejecting unknown values."""
    try:
        return ClipStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ClipStatus)
        raise ValidationError(f"Unknown status '{value}'. Expected one of: {allowed}")


class ObjectRole(Enum):
    """What an object-store entry holds for its clip."""
    VIDEO = "video"
    THUMBNAIL = "thumbnail"


class GrantPermission(Enum):
    """
    Permission bits embedded in an access grant.

    Values are the permission strings written into the grant, so a grant
    is never broader than the single operation it was minted for.
    """
    READ = "r"
    WRITE_CREATE = "cw"


@dataclass(frozen=True)
class AccessGrant:
    """
    A time-boxed capability for one operation on one object.

    Never persisted. The url is a bearer credential: do not log it.
    """
    object_name: str
    permission: GrantPermission
    valid_from: datetime
    valid_until: datetime
    url: str = field(repr=False)

    @property
    def lifetime_seconds(self) -> float:
        return (self.valid_until - self.valid_from).total_seconds()


@dataclass
class Clip:
    """
    Metadata record for one clip, keyed by (id, owner_id).

    owner_id is the partition key. video_object_name is derived once at
    creation and never regenerated. version is the optimistic-concurrency
    token; the store bumps it on every successful replace.
    """
    id: str
    owner_id: str
    title: str
    video_object_name: str
    genre: str = DEFAULT_GENRE
    status: ClipStatus = ClipStatus.PENDING_UPLOAD
    thumbnail_object_name: Optional[str] = None
    views: int = 0
    likes: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    version: int = 1

    @property
    def object_names(self) -> list[str]:
        """Every object-store entry this record references."""
        return [
            name for name in (self.video_object_name, self.thumbnail_object_name)
            if name
        ]

    def touch(self, now: datetime) -> None:
        """Refresh updated_at without ever moving it backwards."""
        self.updated_at = max(now, self.updated_at)


@dataclass(frozen=True)
class ClipPatch:
    """
    The mutable fields of a clip.

    None means "leave unchanged". Object names are deliberately absent:
    they are derived at creation and must stay in lockstep with the bytes.
    """
    title: Optional[str] = None
    genre: Optional[str] = None
    status: Optional[ClipStatus] = None

    @property
    def is_empty(self) -> bool:
        return self.title is None and self.genre is None and self.status is None


@dataclass(frozen=True)
class StoredObject:
    """An entry as listed by the object store."""
    name: str
    size_bytes: int
    last_modified: datetime
