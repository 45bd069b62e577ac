"""
Snowflake repository for clip records.

This module implements the repository pattern for clip data access.
The repository:
1. Translates between Clip dataclasses and table rows
2. Encapsulates all SQL queries
3. Enforces the (clip_id, owner_id) key on every point operation

Replace is conditional on the version column, which is how concurrent
read-modify-write callers detect that they lost a race.
"""

import json
import logging
import threading
from copy import deepcopy
from dataclasses import replace
from typing import Optional

from ....core.clips.models import Clip, ClipStatus
from ....core.errors import ClipNotFoundError, ConflictError
from ..client import SnowflakeConnectionPool

logger = logging.getLogger(__name__)


_COLUMNS = """
    clip_id,
    owner_id,
    title,
    genre,
    status,
    video_object_name,
    thumbnail_object_name,
    views,
    likes,
    version,
    created_at,
    updated_at
"""


class SnowflakeClipRepository:
    """
    Repository for clip persistence in Snowflake.

    Snowflake does not enforce primary keys, so uniqueness on create is
    enforced with MERGE ... WHEN NOT MATCHED rather than by the table.
    """

    def __init__(self, pool: SnowflakeConnectionPool) -> None:
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the clips table if absent. Safe to call repeatedly."""
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS clips (
                        clip_id STRING NOT NULL,
                        owner_id STRING NOT NULL,
                        title STRING NOT NULL,
                        genre STRING NOT NULL,
                        status STRING NOT NULL,
                        video_object_name STRING NOT NULL,
                        thumbnail_object_name STRING,
                        views NUMBER DEFAULT 0,
                        likes VARIANT,
                        version NUMBER NOT NULL,
                        created_at TIMESTAMP_TZ NOT NULL,
                        updated_at TIMESTAMP_TZ NOT NULL,
                        PRIMARY KEY (owner_id, clip_id)
                    )
                    CLUSTER BY (owner_id)
                """)
                conn.commit()
            finally:
                cursor.close()

    def create(self, clip: Clip) -> Clip:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    MERGE INTO clips t
                    USING (
                        SELECT
                            %s AS clip_id,
                            %s AS owner_id,
                            %s AS title,
                            %s AS genre,
                            %s AS status,
                            %s AS video_object_name,
                            %s AS thumbnail_object_name,
                            %s AS views,
                            PARSE_JSON(%s) AS likes,
                            %s AS version,
                            %s::TIMESTAMP_TZ AS created_at,
                            %s::TIMESTAMP_TZ AS updated_at
                    ) s
                    ON t.owner_id = s.owner_id AND t.clip_id = s.clip_id
                    WHEN NOT MATCHED THEN INSERT (
                        clip_id, owner_id, title, genre, status,
                        video_object_name, thumbnail_object_name,
                        views, likes, version, created_at, updated_at
                    ) VALUES (
                        s.clip_id, s.owner_id, s.title, s.genre, s.status,
                        s.video_object_name, s.thumbnail_object_name,
                        s.views, s.likes, s.version, s.created_at, s.updated_at
                    )
                """, (
                    clip.id,
                    clip.owner_id,
                    clip.title,
                    clip.genre,
                    clip.status.value,
                    clip.video_object_name,
                    clip.thumbnail_object_name,
                    clip.views,
                    json.dumps(clip.likes),
                    clip.version,
                    clip.created_at.isoformat(),
                    clip.updated_at.isoformat(),
                ))

                # MERGE returns one row: number of rows inserted
                result = cursor.fetchone()
                if not result or not result[0]:
                    raise ConflictError(f"Clip {clip.id} already exists for owner {clip.owner_id}")

                conn.commit()
                return clip

            except ConflictError:
                raise
            except Exception as e:
                logger.error(
                    "Failed to create clip",
                    extra={"clip_id": clip.id, "error": str(e)}
                )
                raise
            finally:
                cursor.close()

    def get(self, clip_id: str, owner_id: str) -> Clip:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(f"""
                    SELECT {_COLUMNS}
                    FROM clips
                    WHERE owner_id = %s AND clip_id = %s
                """, (owner_id, clip_id))

                row = cursor.fetchone()
                if not row:
                    raise ClipNotFoundError(clip_id, owner_id)
                return _clip_from_row(row)
            finally:
                cursor.close()

    def replace(self, clip: Clip) -> Clip:
        """
        Write clip back if nobody else has since the read.

        video_object_name is not in the SET list: it is fixed at creation.
        """
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE clips
                    SET title = %s,
                        genre = %s,
                        status = %s,
                        thumbnail_object_name = %s,
                        views = %s,
                        likes = PARSE_JSON(%s),
                        updated_at = %s::TIMESTAMP_TZ,
                        version = version + 1
                    WHERE owner_id = %s
                      AND clip_id = %s
                      AND version = %s
                """, (
                    clip.title,
                    clip.genre,
                    clip.status.value,
                    clip.thumbnail_object_name,
                    clip.views,
                    json.dumps(clip.likes),
                    clip.updated_at.isoformat(),
                    clip.owner_id,
                    clip.id,
                    clip.version,
                ))

                if cursor.rowcount == 0:
                    # Distinguish "gone" from "changed underneath us"
                    cursor.execute("""
                        SELECT version FROM clips
                        WHERE owner_id = %s AND clip_id = %s
                    """, (clip.owner_id, clip.id))
                    if cursor.fetchone() is None:
                        raise ClipNotFoundError(clip.id, clip.owner_id)
                    raise ConflictError(f"Clip {clip.id} was modified concurrently")

                conn.commit()
                return replace(clip, likes=list(clip.likes), version=clip.version + 1)
            finally:
                cursor.close()

    def delete(self, clip_id: str, owner_id: str) -> bool:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    DELETE FROM clips
                    WHERE owner_id = %s AND clip_id = %s
                """, (owner_id, clip_id))
                conn.commit()
                return cursor.rowcount > 0
            finally:
                cursor.close()

    def scan(self, owner_id: Optional[str] = None) -> list[Clip]:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                if owner_id is None:
                    cursor.execute(f"SELECT {_COLUMNS} FROM clips")
                else:
                    cursor.execute(f"""
                        SELECT {_COLUMNS}
                        FROM clips
                        WHERE owner_id = %s
                    """, (owner_id,))
                return [_clip_from_row(row) for row in cursor.fetchall()]
            finally:
                cursor.close()


def _clip_from_row(row) -> Clip:
    """Build a Clip from a row in _COLUMNS order."""
    (
        clip_id, owner_id, title, genre, status,
        video_object_name, thumbnail_object_name,
        views, likes, version, created_at, updated_at,
    ) = row

    # VARIANT columns come back as JSON text
    if isinstance(likes, str):
        likes = json.loads(likes)

    return Clip(
        id=clip_id,
        owner_id=owner_id,
        title=title,
        genre=genre,
        status=ClipStatus(status),
        video_object_name=video_object_name,
        thumbnail_object_name=thumbnail_object_name,
        views=int(views or 0),
        likes=list(likes or []),
        version=int(version),
        created_at=created_at,
        updated_at=updated_at,
    )


# ---------------------------------------------------------------------------
# Mock Repository for Local Development
# ---------------------------------------------------------------------------

class MockClipRepository:
    """
    In-memory clip store for local development and tests.

    Behaves like the Snowflake repository, including the version check on
    replace. Records are copied in and out so callers can never mutate
    stored state by holding on to a returned object.
    """

    def __init__(self) -> None:
        # {(owner_id, clip_id): Clip}
        self._clips: dict[tuple[str, str], Clip] = {}
        self._lock = threading.Lock()
        logger.info("Initialized mock clip repository (in-memory)")

    def ensure_schema(self) -> None:
        pass

    def create(self, clip: Clip) -> Clip:
        key = (clip.owner_id, clip.id)
        with self._lock:
            if key in self._clips:
                raise ConflictError(f"Clip {clip.id} already exists for owner {clip.owner_id}")
            self._clips[key] = deepcopy(clip)
        return deepcopy(clip)

    def get(self, clip_id: str, owner_id: str) -> Clip:
        with self._lock:
            stored = self._clips.get((owner_id, clip_id))
            if stored is None:
                raise ClipNotFoundError(clip_id, owner_id)
            return deepcopy(stored)

    def replace(self, clip: Clip) -> Clip:
        key = (clip.owner_id, clip.id)
        with self._lock:
            stored = self._clips.get(key)
            if stored is None:
                raise ClipNotFoundError(clip.id, clip.owner_id)
            if stored.version != clip.version:
                raise ConflictError(f"Clip {clip.id} was modified concurrently")

            updated = deepcopy(clip)
            updated.video_object_name = stored.video_object_name
            updated.version = stored.version + 1
            self._clips[key] = updated
            return deepcopy(updated)

    def delete(self, clip_id: str, owner_id: str) -> bool:
        with self._lock:
            return self._clips.pop((owner_id, clip_id), None) is not None

    def scan(self, owner_id: Optional[str] = None) -> list[Clip]:
        with self._lock:
            return [
                deepcopy(clip) for (owner, _), clip in self._clips.items()
                if owner_id is None or owner == owner_id
            ]
