"""
Unit tests for access-grant issuance.

The mock store checks presented URLs the way the real object store
would, so these tests verify that a grant allows exactly the operation
it was minted for, and only inside its window.
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from cliphub.core.clips.models import GrantPermission
from cliphub.core.errors import ValidationError
from cliphub.infrastructure.storage.client import GrantRejectedError
from cliphub.infrastructure.storage.grants import AccessGrantIssuer


class TestGrantWindow:
    """Tests for the validity window of issued grants."""

    def test_window_starts_before_issuance(self, issuer, clock):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        assert grant.valid_from == clock.now - timedelta(seconds=60)
        assert grant.valid_until == clock.now + timedelta(minutes=60)

    def test_lifetime_is_ttl_plus_skew(self, issuer):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.WRITE_CREATE, 15)
        assert grant.lifetime_seconds == 15 * 60 + 60

    def test_grant_carries_its_object_and_permission(self, issuer):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        assert grant.object_name == "alice/c1-video-clip.mp4"
        assert grant.permission is GrantPermission.READ

    def test_url_is_not_in_repr(self, issuer):
        """Grants are bearer credentials; logging a grant must not leak one."""
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)
        assert grant.url not in repr(grant)

    def test_non_positive_ttl_is_rejected(self, issuer):
        with pytest.raises(ValidationError):
            issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 0)

    def test_empty_object_name_is_rejected(self, issuer):
        with pytest.raises(ValidationError):
            issuer.issue("", GrantPermission.READ, 60)

    def test_store_signs_from_issuer_clock(self, clock):
        store = MagicMock()
        issuer = AccessGrantIssuer(store, clock_skew_seconds=60, clock=clock)

        issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        assert store.presign.call_args.kwargs["issued_at"] == clock.now


class TestGrantEnforcement:
    """Tests that the store honors exactly what a grant allows."""

    def test_write_grant_allows_upload(self, issuer, storage):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.WRITE_CREATE, 15)

        storage.put_with_grant(grant.url, b"video-bytes")

        assert storage._objects["alice/c1-video-clip.mp4"][0] == b"video-bytes"

    def test_write_grant_does_not_allow_read(self, issuer, storage):
        storage._put("alice/c1-video-clip.mp4", b"video-bytes")
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.WRITE_CREATE, 15)

        with pytest.raises(GrantRejectedError):
            storage.get_with_grant(grant.url)

    def test_read_grant_allows_playback(self, issuer, storage):
        storage._put("alice/c1-video-clip.mp4", b"video-bytes")
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        assert storage.get_with_grant(grant.url) == b"video-bytes"

    def test_read_grant_does_not_allow_write(self, issuer, storage):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        with pytest.raises(GrantRejectedError):
            storage.put_with_grant(grant.url, b"overwrite")

    def test_expired_grant_is_rejected(self, issuer, storage, clock):
        storage._put("alice/c1-video-clip.mp4", b"video-bytes")
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        clock.advance(minutes=61)

        with pytest.raises(GrantRejectedError, match="validity window"):
            storage.get_with_grant(grant.url)

    def test_slow_client_clock_is_tolerated(self, issuer, storage, clock):
        """A grant is already valid slightly before the moment it was issued."""
        storage._put("alice/c1-video-clip.mp4", b"video-bytes")
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        clock.advance(seconds=-30)

        assert storage.get_with_grant(grant.url) == b"video-bytes"

    def test_tampered_permission_is_rejected(self, issuer, storage):
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)
        widened = grant.url.replace("sp=r&", "sp=cw&")

        with pytest.raises(GrantRejectedError, match="signature"):
            storage.put_with_grant(widened, b"overwrite")

    def test_grant_is_bound_to_its_object(self, issuer, storage):
        storage._put("alice/c1-video-clip.mp4", b"alice")
        storage._put("bob/c2-video-clip.mp4", b"bob")
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)
        redirected = grant.url.replace("alice%2Fc1", "bob%2Fc2")

        with pytest.raises(GrantRejectedError):
            storage.get_with_grant(redirected)

    def test_window_end_keeps_sub_second_precision(self, issuer, storage, clock):
        storage._put("alice/c1-video-clip.mp4", b"video-bytes")
        clock.advance(microseconds=600000)
        grant = issuer.issue("alice/c1-video-clip.mp4", GrantPermission.READ, 60)

        clock.now = grant.valid_until
        assert storage.get_with_grant(grant.url) == b"video-bytes"

        clock.now = grant.valid_until + timedelta(microseconds=1)
        with pytest.raises(GrantRejectedError, match="validity window"):
            storage.get_with_grant(grant.url)
