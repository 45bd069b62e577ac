"""Domain model for users created by the login flow."""

from dataclasses import dataclass, field
from datetime import datetime

from ..clips.models import utc_now


@dataclass
class User:
    """
    A user keyed by normalized handle.

    The handle doubles as id and username; there is no separate display
    name. version is the optimistic-concurrency token, as on clips.
    """
    id: str
    created_at: datetime = field(default_factory=utc_now)
    last_login_at: datetime = field(default_factory=utc_now)
    version: int = 1

    @property
    def username(self) -> str:
        return self.id
