"""
Snowflake repository for user records.

Users are keyed by their normalized handle. Like clips, replace is
conditional on the version column.
"""

import logging
import threading
from copy import deepcopy
from dataclasses import replace

from ....core.errors import ConflictError, UserNotFoundError
from ....core.users.models import User
from ..client import SnowflakeConnectionPool

logger = logging.getLogger(__name__)


class SnowflakeUserRepository:
    """Repository for user persistence in Snowflake."""

    def __init__(self, pool: SnowflakeConnectionPool) -> None:
        self._pool = pool

    def ensure_schema(self) -> None:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS users (
                        user_id STRING NOT NULL,
                        created_at TIMESTAMP_TZ NOT NULL,
                        last_login_at TIMESTAMP_TZ NOT NULL,
                        version NUMBER NOT NULL,
                        PRIMARY KEY (user_id)
                    )
                """)
                conn.commit()
            finally:
                cursor.close()

    def create(self, user: User) -> User:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    MERGE INTO users t
                    USING (
                        SELECT
                            %s AS user_id,
                            %s::TIMESTAMP_TZ AS created_at,
                            %s::TIMESTAMP_TZ AS last_login_at,
                            %s AS version
                    ) s
                    ON t.user_id = s.user_id
                    WHEN NOT MATCHED THEN INSERT (user_id, created_at, last_login_at, version)
                    VALUES (s.user_id, s.created_at, s.last_login_at, s.version)
                """, (
                    user.id,
                    user.created_at.isoformat(),
                    user.last_login_at.isoformat(),
                    user.version,
                ))

                result = cursor.fetchone()
                if not result or not result[0]:
                    raise ConflictError(f"User {user.id} already exists")

                conn.commit()
                return user
            finally:
                cursor.close()

    def get(self, user_id: str) -> User:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    SELECT user_id, created_at, last_login_at, version
                    FROM users
                    WHERE user_id = %s
                """, (user_id,))

                row = cursor.fetchone()
                if not row:
                    raise UserNotFoundError(user_id)

                return User(
                    id=row[0],
                    created_at=row[1],
                    last_login_at=row[2],
                    version=int(row[3]),
                )
            finally:
                cursor.close()

    def replace(self, user: User) -> User:
        with self._pool.get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    UPDATE users
                    SET last_login_at = %s::TIMESTAMP_TZ,
                        version = version + 1
                    WHERE user_id = %s AND version = %s
                """, (user.last_login_at.isoformat(), user.id, user.version))

                if cursor.rowcount == 0:
                    cursor.execute(
                        "SELECT version FROM users WHERE user_id = %s",
                        (user.id,),
                    )
                    if cursor.fetchone() is None:
                        raise UserNotFoundError(user.id)
                    raise ConflictError(f"User {user.id} was modified concurrently")

                conn.commit()
                return replace(user, version=user.version + 1)
            finally:
                cursor.close()


# ---------------------------------------------------------------------------
# Mock Repository for Local Development
# ---------------------------------------------------------------------------

class MockUserRepository:
    """In-memory user store with the same version semantics."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()
        logger.info("Initialized mock user repository (in-memory)")

    def ensure_schema(self) -> None:
        pass

    def create(self, user: User) -> User:
        with self._lock:
            if user.id in self._users:
                raise ConflictError(f"User {user.id} already exists")
            self._users[user.id] = deepcopy(user)
        return deepcopy(user)

    def get(self, user_id: str) -> User:
        with self._lock:
            if user_id not in self._users:
                raise UserNotFoundError(user_id)
            return deepcopy(self._users[user_id])

    def replace(self, user: User) -> User:
        with self._lock:
            stored = self._users.get(user.id)
            if stored is None:
                raise UserNotFoundError(user.id)
            if stored.version != user.version:
                raise ConflictError(f"User {user.id} was modified concurrently")

            updated = replace(user, created_at=stored.created_at, version=stored.version + 1)
            self._users[user.id] = updated
            return deepcopy(updated)
