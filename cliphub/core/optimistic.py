"""
Bounded retry for optimistic read-modify-write loops.

Stores replace a record only if its version token still matches the one
that was read. When another writer got there first the store raises
ConflictError, and the whole read-modify-write is run again from a
fresh read.
"""

import logging
from typing import Callable, TypeVar

from .errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def retry_on_conflict(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    description: str = "write",
) -> T:
    """
    Run operation until it stops raising ConflictError.

    The operation must do its own read; retrying it with stale state would
    just lose the race again. Raises ConflictError once attempts run out.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except ConflictError:
            logger.warning(
                "Concurrent modification detected",
                extra={"operation": description, "attempt": attempt},
            )

    raise ConflictError(
        f"Gave up on {description} after {max_attempts} conflicting attempts"
    )
