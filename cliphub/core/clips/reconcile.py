"""
Reconciliation between the document store and the object store.

Create and delete are not transactional across the two stores, so they
can leave two kinds of debris:
- pending-upload records whose bytes never arrived
- objects that no record references any more

This pass finds both. Pending clips whose video exists move to uploaded;
pending clips past the deadline without bytes move to failed; orphaned
objects older than the grace period are deleted. It is meant to run
periodically from scripts/reconcile.py, never from request handling.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable

from ..errors import ClipHubError, ConflictError, NotFoundError
from .interfaces import ClipRepository, ObjectStore
from .models import Clip, ClipStatus, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """What a reconciliation pass changed (or would change, in dry-run)."""
    promoted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    orphans_deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def total_changes(self) -> int:
        return len(self.promoted) + len(self.failed) + len(self.orphans_deleted)


class ClipReconciler:
    """Resolves partial states left by non-transactional create/delete."""

    def __init__(
        self,
        clips: ClipRepository,
        objects: ObjectStore,
        pending_deadline: timedelta = timedelta(hours=24),
        orphan_grace: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clips = clips
        self._objects = objects
        self._pending_deadline = pending_deadline
        self._orphan_grace = orphan_grace
        self._clock = clock

    async def run(self, dry_run: bool = False) -> ReconciliationReport:
        report = ReconciliationReport(dry_run=dry_run)
        now = self._clock()

        clips = await asyncio.to_thread(self._clips.scan)
        for clip in clips:
            if clip.status is ClipStatus.PENDING_UPLOAD:
                await self._settle_pending(clip, now, report)

        referenced = {name for clip in clips for name in clip.object_names}
        await self._prune_orphans(referenced, now, report)

        logger.info(
            "Reconciliation pass finished",
            extra={
                "dry_run": dry_run,
                "promoted": len(report.promoted),
                "failed": len(report.failed),
                "orphans_deleted": len(report.orphans_deleted),
                "skipped": len(report.skipped),
            }
        )
        return report

    async def _settle_pending(
        self,
        clip: Clip,
        now: datetime,
        report: ReconciliationReport,
    ) -> None:
        try:
            has_video = await self._objects.exists(clip.video_object_name)
        except ClipHubError as e:
            logger.warning(
                "Could not check clip video; leaving it for the next pass",
                extra={"clip_id": clip.id, "error": str(e)},
            )
            report.skipped.append(clip.id)
            return

        if has_video:
            target, bucket = ClipStatus.UPLOADED, report.promoted
        elif now - clip.created_at > self._pending_deadline:
            target, bucket = ClipStatus.FAILED, report.failed
        else:
            return

        if not report.dry_run:
            changed = replace(clip, likes=list(clip.likes), status=target)
            changed.touch(now)
            try:
                await asyncio.to_thread(self._clips.replace, changed)
            except (ConflictError, NotFoundError) as e:
                # Someone touched the clip since the scan; next pass will see it.
                logger.info(
                    "Skipping clip changed during reconciliation",
                    extra={"clip_id": clip.id, "error": str(e)},
                )
                report.skipped.append(clip.id)
                return

        bucket.append(clip.id)

    async def _prune_orphans(
        self,
        referenced: set[str],
        now: datetime,
        report: ReconciliationReport,
    ) -> None:
        cutoff = now - self._orphan_grace

        for stored in await self._objects.list_objects():
            if stored.name in referenced or stored.last_modified > cutoff:
                continue
            if not report.dry_run:
                try:
                    await self._objects.delete_if_exists(stored.name)
                except ClipHubError as e:
                    logger.warning(
                        "Could not delete orphaned object; leaving it for the next pass",
                        extra={"object_name": stored.name, "error": str(e)},
                    )
                    report.skipped.append(stored.name)
                    continue
            logger.info(
                "Orphaned object removed" if not report.dry_run else "Orphaned object found",
                extra={"object_name": stored.name},
            )
            report.orphans_deleted.append(stored.name)
