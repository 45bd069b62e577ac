"""
Clip lifecycle orchestration.

The controller coordinates two stores that fail independently: the
document store holding clip records and the object store holding bytes.
Neither create nor delete is transactional across them:

- create persists the record before minting upload grants, so a grant
  failure leaves a pending-upload record with no path to bytes
- delete removes objects before the record, so a crash leaves at worst
  an orphaned blob rather than a record pointing at nothing

Both leftovers are cleaned up by the reconciler, not retried here.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from ..errors import ValidationError
from ..optimistic import DEFAULT_MAX_ATTEMPTS, retry_on_conflict
from .interfaces import ClipRepository, GrantIssuer, ObjectStore
from .models import (
    DEFAULT_GENRE,
    AccessGrant,
    Clip,
    ClipPatch,
    ClipStatus,
    GrantPermission,
    ObjectRole,
    utc_now,
)
from .naming import derive_object_name

logger = logging.getLogger(__name__)

DEFAULT_UPLOAD_TTL_MINUTES = 15
DEFAULT_READ_TTL_MINUTES = 60


@dataclass
class CreatedClip:
    """A freshly registered clip plus the grants to upload its bytes."""
    clip: Clip
    video_upload: AccessGrant
    thumbnail_upload: Optional[AccessGrant] = None


@dataclass
class ResolvedClip:
    """A clip with read grants minted for playback."""
    clip: Clip
    video: AccessGrant
    thumbnail: Optional[AccessGrant] = None


@dataclass
class DeletionResult:
    """Outcome of a delete: which objects settled and which failed."""
    clip: Clip
    deleted_objects: list[str] = field(default_factory=list)
    failed_objects: list[str] = field(default_factory=list)


class ClipLifecycleController:
    """
    Creates, reads, lists, updates and deletes clips.

    All store handles come in through the constructor; the controller
    holds no process-wide state of its own.
    """

    def __init__(
        self,
        clips: ClipRepository,
        objects: ObjectStore,
        grants: GrantIssuer,
        upload_ttl_minutes: int = DEFAULT_UPLOAD_TTL_MINUTES,
        read_ttl_minutes: int = DEFAULT_READ_TTL_MINUTES,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._clips = clips
        self._objects = objects
        self._grants = grants
        self._upload_ttl = upload_ttl_minutes
        self._read_ttl = read_ttl_minutes
        self._max_attempts = max_attempts
        self._clock = clock
        self._new_id = id_factory

    async def create(
        self,
        title: Optional[str],
        owner_id: Optional[str],
        video_file_name: Optional[str],
        genre: Optional[str] = None,
        thumbnail_file_name: Optional[str] = None,
    ) -> CreatedClip:
        """
        Register a clip and mint upload grants for its objects.

        The record is persisted in pending-upload before any grant is
        issued. The caller uploads bytes out-of-band using the grants.
        """
        title = (title or "").strip()
        if not title or not owner_id or not (video_file_name or "").strip():
            raise ValidationError(
                "Missing required fields: title, userId and videoFileName are required"
            )

        clip_id = self._new_id()
        video_name = derive_object_name(owner_id, clip_id, ObjectRole.VIDEO, video_file_name)
        thumbnail_name = None
        if thumbnail_file_name and thumbnail_file_name.strip():
            thumbnail_name = derive_object_name(
                owner_id, clip_id, ObjectRole.THUMBNAIL, thumbnail_file_name
            )

        await self._objects.ensure_container()

        now = self._clock()
        # Repository calls block on the network, so they run off the event loop
        clip = await asyncio.to_thread(self._clips.create, Clip(
            id=clip_id,
            owner_id=owner_id,
            title=title,
            genre=genre or DEFAULT_GENRE,
            status=ClipStatus.PENDING_UPLOAD,
            video_object_name=video_name,
            thumbnail_object_name=thumbnail_name,
            created_at=now,
            updated_at=now,
        ))

        logger.info(
            "Clip registered",
            extra={
                "clip_id": clip_id,
                "owner_id": owner_id,
                "has_thumbnail": thumbnail_name is not None,
            }
        )

        video_upload = self._grants.issue(
            video_name, GrantPermission.WRITE_CREATE, self._upload_ttl
        )
        thumbnail_upload = None
        if thumbnail_name:
            thumbnail_upload = self._grants.issue(
                thumbnail_name, GrantPermission.WRITE_CREATE, self._upload_ttl
            )

        return CreatedClip(
            clip=clip,
            video_upload=video_upload,
            thumbnail_upload=thumbnail_upload,
        )

    def read(self, clip_id: str, owner_id: Optional[str]) -> Clip:
        """Plain point read of the record."""
        _require_owner(owner_id)
        clip = self._clips.get(clip_id, owner_id)
        logger.debug("Clip read", extra={"clip_id": clip_id, "owner_id": owner_id})
        return clip

    def get(self, clip_id: str, owner_id: Optional[str]) -> ResolvedClip:
        """
        Read a clip and mint fresh read grants for playback.

        Grants are never cached or stored, so revoking access is just a
        matter of letting the short TTL lapse.
        """
        clip = self.read(clip_id, owner_id)

        video = self._grants.issue(
            clip.video_object_name, GrantPermission.READ, self._read_ttl
        )
        thumbnail = None
        if clip.thumbnail_object_name:
            thumbnail = self._grants.issue(
                clip.thumbnail_object_name, GrantPermission.READ, self._read_ttl
            )

        return ResolvedClip(clip=clip, video=video, thumbnail=thumbnail)

    def list(
        self,
        owner_id: Optional[str] = None,
        include_all: bool = False,
    ) -> list[Clip]:
        """List every clip (administrative path) or one owner's clips."""
        if include_all:
            return self._clips.scan()
        _require_owner(owner_id, "userId is required unless all=true")
        return self._clips.scan(owner_id=owner_id)

    def update(self, clip_id: str, owner_id: Optional[str], patch: ClipPatch) -> Clip:
        """
        Merge the fields present in patch onto the stored record.

        Runs as a conditional read-modify-write; a concurrent writer forces
        a fresh read and a second attempt.
        """
        _require_owner(owner_id)
        if patch.title is not None and not patch.title.strip():
            raise ValidationError("title must not be empty")

        def attempt() -> Clip:
            current = self._clips.get(clip_id, owner_id)
            changed = _apply_patch(current, patch)
            changed.touch(self._clock())
            return self._clips.replace(changed)

        updated = retry_on_conflict(attempt, self._max_attempts, "clip update")

        logger.info(
            "Clip updated",
            extra={
                "clip_id": clip_id,
                "owner_id": owner_id,
                "status": updated.status.value,
                "version": updated.version,
            }
        )
        return updated

    async def delete(self, clip_id: str, owner_id: Optional[str]) -> DeletionResult:
        """
        Delete a clip's objects, then its record.

        Object deletions run concurrently and each is delete-if-present.
        The record is deleted once every object deletion has settled,
        whether or not it succeeded; failures are reported, not raised.
        """
        clip = await asyncio.to_thread(self.read, clip_id, owner_id)
        names = clip.object_names

        outcomes = await asyncio.gather(
            *(self._objects.delete_if_exists(name) for name in names),
            return_exceptions=True,
        )

        result = DeletionResult(clip=clip)
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Object deletion failed; leaving orphan for reconciliation",
                    extra={"clip_id": clip_id, "object_name": name, "error": str(outcome)},
                )
                result.failed_objects.append(name)
            else:
                result.deleted_objects.append(name)

        await asyncio.to_thread(self._clips.delete, clip_id, owner_id)

        logger.info(
            "Clip deleted",
            extra={
                "clip_id": clip_id,
                "owner_id": owner_id,
                "objects_deleted": len(result.deleted_objects),
                "objects_failed": len(result.failed_objects),
            }
        )
        return result


def _require_owner(owner_id: Optional[str], message: str = "userId is required") -> None:
    if not owner_id:
        raise ValidationError(message)


def _apply_patch(clip: Clip, patch: ClipPatch) -> Clip:
    """Return a copy of clip with the patch merged in."""
    changed = replace(clip, likes=list(clip.likes))

    if patch.title is not None:
        changed.title = patch.title.strip()
    if patch.genre is not None:
        changed.genre = patch.genre or DEFAULT_GENRE
    if patch.status is not None:
        if not clip.status.can_transition_to(patch.status):
            raise ValidationError(
                f"Cannot move clip from '{clip.status.value}' to '{patch.status.value}'"
            )
        changed.status = patch.status

    return changed
