"""
View and like mutations.

Both are read-modify-write against a single record. Replace is
conditional on the version that was read, so two simultaneous viewers
can no longer overwrite each other's increment: the loser re-reads and
applies its change on top of the winner's.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional

from ..errors import ValidationError
from ..optimistic import DEFAULT_MAX_ATTEMPTS, retry_on_conflict
from .interfaces import ClipRepository
from .models import Clip, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LikeResult:
    likes: int
    liked: bool


class EngagementMutator:
    """Applies view and like changes with bounded optimistic retry."""

    def __init__(
        self,
        clips: ClipRepository,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clips = clips
        self._max_attempts = max_attempts
        self._clock = clock

    def record_view(self, clip_id: str, owner_id: Optional[str]) -> int:
        """Increment the view counter by one. Returns the new count."""
        if not owner_id:
            raise ValidationError("Owner userId is required")

        def change(clip: Clip) -> Clip:
            return replace(clip, likes=list(clip.likes), views=clip.views + 1)

        updated = self._mutate(clip_id, owner_id, change, "record view")
        return updated.views

    def toggle_like(
        self,
        clip_id: str,
        owner_id: Optional[str],
        liker_id: Optional[str],
    ) -> LikeResult:
        """
        Flip liker_id's membership in the clip's likes.

        Not idempotent per call: a second call undoes the first.
        """
        if not owner_id or not liker_id:
            raise ValidationError("Missing required fields: owner userId and liker userId")

        def change(clip: Clip) -> Clip:
            likes = [like for like in dict.fromkeys(clip.likes) if like != liker_id]
            if liker_id not in clip.likes:
                likes.append(liker_id)
            return replace(clip, likes=likes)

        updated = self._mutate(clip_id, owner_id, change, "toggle like")
        liked = liker_id in updated.likes

        logger.info(
            "Like toggled",
            extra={"clip_id": clip_id, "liked": liked, "likes": len(updated.likes)},
        )
        return LikeResult(likes=len(updated.likes), liked=liked)

    def _mutate(
        self,
        clip_id: str,
        owner_id: str,
        change: Callable[[Clip], Clip],
        description: str,
    ) -> Clip:
        def attempt() -> Clip:
            current = self._clips.get(clip_id, owner_id)
            changed = change(current)
            changed.touch(self._clock())
            return self._clips.replace(changed)

        return retry_on_conflict(attempt, self._max_attempts, description)

