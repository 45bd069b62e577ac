"""
Login as read-or-create.

The first login for a handle creates the user; every later login stamps
last_login_at. Both branches race with concurrent logins for the same
handle: two first logins both miss and both try to create, two later
logins both read the same version. Either way the loser gets a
ConflictError from the store and simply runs the loop again.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Protocol

from ..clips.models import utc_now
from ..clips.naming import normalize_username
from ..errors import UserNotFoundError, ValidationError
from ..optimistic import DEFAULT_MAX_ATTEMPTS, retry_on_conflict
from .models import User

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    """Keyed store for users; the handle is both id and partition key."""

    def create(self, user: User) -> User: ...
    def get(self, user_id: str) -> User: ...
    def replace(self, user: User) -> User: ...


@dataclass(frozen=True)
class LoginResult:
    user: User
    created: bool


class LoginService:
    """Normalizes a handle and upserts the matching user record."""

    def __init__(
        self,
        users: UserRepository,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._max_attempts = max_attempts
        self._clock = clock

    def login(self, raw_username: Optional[str]) -> LoginResult:
        if raw_username is None or not str(raw_username).strip():
            raise ValidationError("Username is required")

        handle = normalize_username(raw_username)
        if not handle:
            raise ValidationError("Invalid username")

        def attempt() -> LoginResult:
            now = self._clock()
            try:
                existing = self._users.get(handle)
            except UserNotFoundError:
                created = self._users.create(User(id=handle, created_at=now, last_login_at=now))
                return LoginResult(user=created, created=True)

            stamped = replace(existing, last_login_at=max(now, existing.last_login_at))
            return LoginResult(user=self._users.replace(stamped), created=False)

        result = retry_on_conflict(attempt, self._max_attempts, "user login")

        logger.info(
            "User logged in",
            extra={"user_id": handle, "created": result.created},
        )
        return result
