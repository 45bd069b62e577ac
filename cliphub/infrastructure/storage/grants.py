"""
Access-grant issuance.

A grant is a presigned URL for one operation on one object, valid for a
short window. Narrow TTLs bound the blast radius of a leaked URL, and
the permission is minted per call: write-create for uploads only, read
for playback only.

The window starts slightly before issuance so a client whose clock runs
a little behind ours can still use a fresh grant.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable

from ...core.clips.interfaces import ObjectStore
from ...core.clips.models import AccessGrant, GrantPermission, utc_now
from ...core.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CLOCK_SKEW_SECONDS = 60


class AccessGrantIssuer:
    """
    Derives access grants from the object store's signing credential.

    Pure derivation: no network I/O and nothing stored. The resulting URL
    is a bearer credential, so only the object name and window are logged.
    """

    def __init__(
        self,
        store: ObjectStore,
        clock_skew_seconds: int = DEFAULT_CLOCK_SKEW_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._skew = timedelta(seconds=clock_skew_seconds)
        self._clock = clock

    def issue(
        self,
        object_name: str,
        permission: GrantPermission,
        ttl_minutes: int,
    ) -> AccessGrant:
        if not object_name:
            raise ValidationError("Cannot issue a grant without an object name")
        if ttl_minutes <= 0:
            raise ValidationError("Grant TTL must be positive")

        issued_at = self._clock()
        valid_from = issued_at - self._skew
        valid_until = issued_at + timedelta(minutes=ttl_minutes)

        url = self._store.presign(
            object_name,
            permission,
            valid_from,
            valid_until,
            issued_at=issued_at,
        )

        logger.debug(
            "Issued access grant",
            extra={
                "object_name": object_name,
                "permission": permission.value,
                "valid_until": valid_until.isoformat(),
            }
        )

        return AccessGrant(
            object_name=object_name,
            permission=permission,
            valid_from=valid_from,
            valid_until=valid_until,
            url=url,
        )
