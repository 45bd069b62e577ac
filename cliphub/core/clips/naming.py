"""
Object-name derivation and handle normalization.

Object names follow {owner_id}/{clip_id}-{role}-{file_name}:
- the owner prefix makes an owner's objects enumerable by prefix
- the clip id (a fresh UUID4 per creation) keeps names unique across clips
- the role tag keeps a video and a thumbnail apart when file names match
"""

import re
from typing import Optional

from ..errors import ValidationError
from .models import ObjectRole

THUMBNAIL_PLACEHOLDER = "thumbnail.jpg"
MAX_HANDLE_LENGTH = 24

_WHITESPACE_RUN = re.compile(r"\s+")
_UNSAFE_FILE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
_UNSAFE_HANDLE_CHARS = re.compile(r"[^a-z0-9_\-]")


def sanitize_file_name(raw: Optional[str]) -> str:
    """
    Make a client-supplied file name safe for use in an object name.

    >>> sanitize_file_name("My Clip!! 01.mp4")
    'My_Clip_01.mp4'
    """
    collapsed = _WHITESPACE_RUN.sub("_", (raw or "").strip())
    return _UNSAFE_FILE_CHARS.sub("", collapsed)


def derive_object_name(
    owner_id: str,
    clip_id: str,
    role: ObjectRole,
    raw_file_name: Optional[str],
) -> str:
    """
    Build the object-store name for one of a clip's files.

    An empty sanitized name is an input error for the video, and falls
    back to a fixed placeholder for the thumbnail.
    """
    if not owner_id:
        raise ValidationError("userId is required")
    if "/" in owner_id:
        raise ValidationError("userId must not contain '/'")
    if not clip_id:
        raise ValidationError("clip id is required")

    file_name = sanitize_file_name(raw_file_name)
    if not file_name:
        if role is ObjectRole.VIDEO:
            raise ValidationError("videoFileName has no usable characters")
        file_name = THUMBNAIL_PLACEHOLDER

    return f"{owner_id}/{clip_id}-{role.value}-{file_name}"


def normalize_username(raw: Optional[str]) -> str:
    """Lowercase, restrict to [a-z0-9_-] and cap the length of a login handle."""
    lowered = str(raw or "").strip().lower()
    return _UNSAFE_HANDLE_CHARS.sub("", lowered)[:MAX_HANDLE_LENGTH]
