"""
Unit tests for the Snowflake repositories and connection pool.

The connection is a MagicMock, so these tests check the statements we
send and how rowcounts are interpreted, not Snowflake itself.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from cliphub.core.clips.models import Clip, ClipStatus
from cliphub.core.errors import ClipNotFoundError, ConflictError, UserNotFoundError
from cliphub.core.users.models import User
from cliphub.infrastructure.snowflake.client import SnowflakeConfig, SnowflakeConnectionPool
from cliphub.infrastructure.snowflake.repositories.clips import SnowflakeClipRepository
from cliphub.infrastructure.snowflake.repositories.users import SnowflakeUserRepository

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakePool:
    """Hands out the same mock connection every time."""

    def __init__(self) -> None:
        self.connection = MagicMock()
        self.cursor = self.connection.cursor.return_value

    @contextmanager
    def get_connection(self):
        yield self.connection


@pytest.fixture
def pool() -> FakePool:
    return FakePool()


def _clip(**overrides) -> Clip:
    fields = dict(
        id="c1",
        owner_id="alice",
        title="Sunset",
        video_object_name="alice/c1-video-clip.mp4",
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Clip(**fields)


def _row(**overrides):
    values = dict(
        clip_id="c1",
        owner_id="alice",
        title="Sunset",
        genre="unknown",
        status="ready",
        video_object_name="alice/c1-video-clip.mp4",
        thumbnail_object_name=None,
        views=4,
        likes='["bob"]',
        version=3,
        created_at=NOW,
        updated_at=NOW,
    )
    values.update(overrides)
    return tuple(values.values())


# ---------------------------------------------------------------------------
# Clip repository
# ---------------------------------------------------------------------------

class TestSnowflakeClipRepository:
    """Tests for clip persistence."""

    def test_create_inserts_with_merge(self, pool):
        pool.cursor.fetchone.return_value = (1,)
        repo = SnowflakeClipRepository(pool)

        created = repo.create(_clip())

        sql, params = pool.cursor.execute.call_args.args
        assert "MERGE INTO clips" in sql
        assert "WHEN NOT MATCHED" in sql
        assert params[0] == "c1"
        assert params[1] == "alice"
        assert created.id == "c1"
        pool.connection.commit.assert_called_once()

    def test_create_duplicate_conflicts(self, pool):
        pool.cursor.fetchone.return_value = (0,)
        repo = SnowflakeClipRepository(pool)

        with pytest.raises(ConflictError):
            repo.create(_clip())

        pool.connection.commit.assert_not_called()

    def test_get_maps_row_to_clip(self, pool):
        pool.cursor.fetchone.return_value = _row()
        repo = SnowflakeClipRepository(pool)

        clip = repo.get("c1", "alice")

        assert clip.status is ClipStatus.READY
        assert clip.likes == ["bob"]
        assert clip.views == 4
        assert clip.version == 3

    def test_get_scopes_by_owner_and_id(self, pool):
        pool.cursor.fetchone.return_value = _row()
        repo = SnowflakeClipRepository(pool)

        repo.get("c1", "alice")

        sql, params = pool.cursor.execute.call_args.args
        assert "WHERE owner_id = %s AND clip_id = %s" in sql
        assert params == ("alice", "c1")

    def test_get_missing_is_not_found(self, pool):
        pool.cursor.fetchone.return_value = None
        repo = SnowflakeClipRepository(pool)

        with pytest.raises(ClipNotFoundError):
            repo.get("c1", "alice")

    def test_replace_is_conditional_on_version(self, pool):
        pool.cursor.rowcount = 1
        repo = SnowflakeClipRepository(pool)

        updated = repo.replace(_clip(version=3, views=5))

        sql, params = pool.cursor.execute.call_args.args
        assert "AND version = %s" in sql
        assert "video_object_name" not in sql
        assert params[-1] == 3
        assert updated.version == 4
        assert updated.views == 5

    def test_replace_stale_version_conflicts(self, pool):
        pool.cursor.rowcount = 0
        pool.cursor.fetchone.return_value = (4,)
        repo = SnowflakeClipRepository(pool)

        with pytest.raises(ConflictError):
            repo.replace(_clip(version=3))

    def test_replace_missing_clip_is_not_found(self, pool):
        pool.cursor.rowcount = 0
        pool.cursor.fetchone.return_value = None
        repo = SnowflakeClipRepository(pool)

        with pytest.raises(ClipNotFoundError):
            repo.replace(_clip())

    def test_delete_reports_whether_a_row_went(self, pool):
        repo = SnowflakeClipRepository(pool)

        pool.cursor.rowcount = 1
        assert repo.delete("c1", "alice") is True

        pool.cursor.rowcount = 0
        assert repo.delete("c1", "alice") is False

    def test_scan_by_owner_filters(self, pool):
        pool.cursor.fetchall.return_value = [_row(), _row(clip_id="c2", likes=None)]
        repo = SnowflakeClipRepository(pool)

        clips = repo.scan(owner_id="alice")

        sql, params = pool.cursor.execute.call_args.args
        assert "WHERE owner_id = %s" in sql
        assert params == ("alice",)
        assert [clip.id for clip in clips] == ["c1", "c2"]
        assert clips[1].likes == []

    def test_cursor_is_always_closed(self, pool):
        pool.cursor.fetchone.return_value = None
        repo = SnowflakeClipRepository(pool)

        with pytest.raises(ClipNotFoundError):
            repo.get("c1", "alice")

        pool.cursor.close.assert_called_once()


# ---------------------------------------------------------------------------
# User repository
# ---------------------------------------------------------------------------

class TestSnowflakeUserRepository:
    """Tests for user persistence."""

    def test_get_maps_row_to_user(self, pool):
        pool.cursor.fetchone.return_value = ("bob", NOW, NOW, 2)
        repo = SnowflakeUserRepository(pool)

        user = repo.get("bob")

        assert user.id == "bob"
        assert user.version == 2

    def test_get_missing_is_not_found(self, pool):
        pool.cursor.fetchone.return_value = None
        repo = SnowflakeUserRepository(pool)

        with pytest.raises(UserNotFoundError):
            repo.get("bob")

    def test_create_duplicate_conflicts(self, pool):
        pool.cursor.fetchone.return_value = (0,)
        repo = SnowflakeUserRepository(pool)

        with pytest.raises(ConflictError):
            repo.create(User(id="bob", created_at=NOW, last_login_at=NOW))

    def test_replace_stale_version_conflicts(self, pool):
        pool.cursor.rowcount = 0
        pool.cursor.fetchone.return_value = (5,)
        repo = SnowflakeUserRepository(pool)

        with pytest.raises(ConflictError):
            repo.replace(User(id="bob", created_at=NOW, last_login_at=NOW, version=4))

    def test_replace_bumps_version(self, pool):
        pool.cursor.rowcount = 1
        repo = SnowflakeUserRepository(pool)

        updated = repo.replace(User(id="bob", created_at=NOW, last_login_at=NOW, version=4))

        assert updated.version == 5


# ---------------------------------------------------------------------------
# Connection pool
# ---------------------------------------------------------------------------

def _open_connection() -> MagicMock:
    conn = MagicMock()
    conn.is_closed.return_value = False
    return conn


class TestSnowflakeConnectionPool:
    """Tests for connection reuse."""

    def test_idle_connection_is_reused(self):
        conn = _open_connection()
        connector = MagicMock(return_value=conn)
        pool = SnowflakeConnectionPool(SnowflakeConfig(account="a", user="u"), connector=connector)

        with pool.get_connection():
            pass
        with pool.get_connection() as second:
            assert second is conn

        assert connector.call_count == 1

    def test_closed_connection_is_dropped(self):
        conn = MagicMock()
        conn.is_closed.return_value = True
        connector = MagicMock(return_value=conn)
        pool = SnowflakeConnectionPool(SnowflakeConfig(account="a", user="u"), connector=connector)

        with pool.get_connection():
            pass
        with pool.get_connection():
            pass

        assert connector.call_count == 2

    def test_close_closes_idle_connections(self):
        conn = _open_connection()
        pool = SnowflakeConnectionPool(
            SnowflakeConfig(account="a", user="u"),
            connector=MagicMock(return_value=conn),
        )
        with pool.get_connection():
            pass

        pool.close()

        conn.close.assert_called_once()
