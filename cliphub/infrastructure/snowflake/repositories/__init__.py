"""
Snowflake repositories.

Each repository also ships an in-memory Mock implementation with the
same semantics, selected by SNOWFLAKE_MOCK_MODE.
"""

from .clips import MockClipRepository, SnowflakeClipRepository
from .users import MockUserRepository, SnowflakeUserRepository

__all__ = [
    "MockClipRepository",
    "MockUserRepository",
    "SnowflakeClipRepository",
    "SnowflakeUserRepository",
]
