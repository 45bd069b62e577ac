"""
API tests for the clip routes.

The app runs on in-memory stores; the mock object store stands in for
the client's direct upload and playback against the bucket.
"""

import pytest

from cliphub.core.errors import ConflictError
from cliphub.infrastructure.storage.client import GrantRejectedError


def _register(client, **overrides):
    body = {"title": "Sunset", "userId": "alice", "videoFileName": "clip.mp4"}
    body.update(overrides)
    return client.post("/clips", json=body)


class TestCreateClip:
    """Tests for POST /clips."""

    def test_create_returns_pending_clip_and_upload_url(self, test_client):
        response = _register(test_client)

        assert response.status_code == 201
        data = response.json()
        clip = data["clip"]
        assert clip["userId"] == "alice"
        assert clip["status"] == "pending-upload"
        assert clip["genre"] == "unknown"
        assert clip["views"] == 0
        assert clip["likes"] == []
        assert clip["videoObjectName"] == f"alice/{clip['id']}-video-clip.mp4"
        assert data["videoUploadUrl"]
        assert data["thumbnailUploadUrl"] is None

    def test_upload_url_accepts_bytes(self, test_client, app_context):
        data = _register(test_client).json()

        app_context.object_store.put_with_grant(data["videoUploadUrl"], b"video")

        assert app_context.object_store._objects[data["clip"]["videoObjectName"]][0] == b"video"

    def test_thumbnail_gets_upload_url(self, test_client):
        data = _register(test_client, thumbnailFileName="cover.jpg").json()

        assert data["clip"]["thumbnailObjectName"].endswith("-thumbnail-cover.jpg")
        assert data["thumbnailUploadUrl"]

    @pytest.mark.parametrize("missing", ["title", "userId", "videoFileName"])
    def test_missing_field_is_400(self, test_client, missing):
        body = {"title": "Sunset", "userId": "alice", "videoFileName": "clip.mp4"}
        del body[missing]

        response = test_client.post("/clips", json=body)

        assert response.status_code == 400
        assert "Missing required fields" in response.json()["error"]

    def test_malformed_json_is_400(self, test_client):
        response = test_client.post(
            "/clips",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert "error" in response.json()


class TestReadClips:
    """Tests for GET /clips and GET /clips/{id}."""

    def test_get_returns_record(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.get(f"/clips/{clip['id']}", params={"userId": "alice"})

        assert response.status_code == 200
        assert response.json()["id"] == clip["id"]

    def test_get_for_other_owner_is_404(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.get(f"/clips/{clip['id']}", params={"userId": "bob"})

        assert response.status_code == 404
        assert "not found" in response.json()["error"]

    def test_get_without_owner_is_400(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.get(f"/clips/{clip['id']}")

        assert response.status_code == 400

    def test_list_by_owner(self, test_client):
        _register(test_client, userId="alice")
        _register(test_client, userId="bob")

        response = test_client.get("/clips", params={"userId": "alice"})

        assert response.status_code == 200
        assert [clip["userId"] for clip in response.json()] == ["alice"]

    def test_list_all(self, test_client):
        _register(test_client, userId="alice")
        _register(test_client, userId="bob")

        response = test_client.get("/clips", params={"all": "true"})

        assert len(response.json()) == 2

    def test_list_without_owner_is_400(self, test_client):
        response = test_client.get("/clips")

        assert response.status_code == 400
        assert "userId is required" in response.json()["error"]


class TestPlayUrls:
    """Tests for GET /clips/{id}/playUrls."""

    def test_play_urls_without_thumbnail(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.get(f"/clips/{clip['id']}/playUrls", params={"userId": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == clip["id"]
        assert data["userId"] == "alice"
        assert data["videoUrl"]
        assert data["thumbnailUrl"] is None

    def test_play_url_reads_but_cannot_write(self, test_client, app_context):
        created = _register(test_client).json()
        store = app_context.object_store
        store.put_with_grant(created["videoUploadUrl"], b"video")

        urls = test_client.get(
            f"/clips/{created['clip']['id']}/playUrls", params={"userId": "alice"}
        ).json()

        assert store.get_with_grant(urls["videoUrl"]) == b"video"
        with pytest.raises(GrantRejectedError):
            store.put_with_grant(urls["videoUrl"], b"overwrite")

    def test_play_urls_for_missing_clip_is_404(self, test_client):
        response = test_client.get("/clips/nope/playUrls", params={"userId": "alice"})
        assert response.status_code == 404


class TestUpdateClip:
    """Tests for PUT /clips/{id}."""

    def test_update_title_and_status(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.put(
            f"/clips/{clip['id']}",
            params={"userId": "alice"},
            json={"title": "Dawn", "status": "uploaded"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Dawn"
        assert data["status"] == "uploaded"
        assert data["version"] == clip["version"] + 1

    def test_unknown_status_is_400(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.put(
            f"/clips/{clip['id']}", params={"userId": "alice"}, json={"status": "bogus"}
        )

        assert response.status_code == 400

    def test_object_names_cannot_be_patched(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.put(
            f"/clips/{clip['id']}",
            params={"userId": "alice"},
            json={"videoObjectName": "bob/stolen.mp4"},
        )

        assert response.status_code == 400
        current = test_client.get(f"/clips/{clip['id']}", params={"userId": "alice"}).json()
        assert current["videoObjectName"] == clip["videoObjectName"]

    def test_illegal_transition_is_400(self, test_client):
        clip = _register(test_client).json()["clip"]
        test_client.put(f"/clips/{clip['id']}", params={"userId": "alice"}, json={"status": "failed"})

        response = test_client.put(
            f"/clips/{clip['id']}", params={"userId": "alice"}, json={"status": "ready"}
        )

        assert response.status_code == 400


class TestDeleteClip:
    """Tests for DELETE /clips/{id}."""

    def test_delete_removes_record_and_objects(self, test_client, app_context):
        created = _register(test_client).json()
        app_context.object_store.put_with_grant(created["videoUploadUrl"], b"video")
        clip = created["clip"]

        response = test_client.delete(f"/clips/{clip['id']}", params={"userId": "alice"})

        assert response.status_code == 200
        data = response.json()
        assert data["deleted"] is True
        assert data["deletedBlobs"] == [clip["videoObjectName"]]
        assert data["failedBlobs"] == []
        follow_up = test_client.get(f"/clips/{clip['id']}", params={"userId": "alice"})
        assert follow_up.status_code == 404

    def test_delete_missing_clip_is_404(self, test_client, app_context):
        store = app_context.object_store
        calls = []

        async def record_exists(name):
            calls.append(("exists", name))
            return False

        async def record_delete(name):
            calls.append(("delete_if_exists", name))
            return False

        store.exists = record_exists
        store.delete_if_exists = record_delete

        response = test_client.delete("/clips/nope", params={"userId": "alice"})

        assert response.status_code == 404
        assert calls == []


class TestEngagement:
    """Tests for POST /clips/{id}/view and /like."""

    def test_views_count_up(self, test_client):
        clip = _register(test_client).json()["clip"]

        first = test_client.post(f"/clips/{clip['id']}/view", params={"userId": "alice"})
        second = test_client.post(f"/clips/{clip['id']}/view", params={"userId": "alice"})

        assert first.json() == {"views": 1}
        assert second.json() == {"views": 2}

    def test_view_without_owner_is_400(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.post(f"/clips/{clip['id']}/view")

        assert response.status_code == 400

    def test_like_toggles(self, test_client):
        clip = _register(test_client).json()["clip"]
        url = f"/clips/{clip['id']}/like"

        liked = test_client.post(url, params={"userId": "alice"}, json={"userId": "bob"})
        unliked = test_client.post(url, params={"userId": "alice"}, json={"userId": "bob"})

        assert liked.json() == {"likes": 1, "liked": True}
        assert unliked.json() == {"likes": 0, "liked": False}

    def test_like_without_liker_is_400(self, test_client):
        clip = _register(test_client).json()["clip"]

        response = test_client.post(
            f"/clips/{clip['id']}/like", params={"userId": "alice"}, json={}
        )

        assert response.status_code == 400
        assert "Missing required fields" in response.json()["error"]

    def test_like_unknown_clip_is_404(self, test_client):
        response = test_client.post(
            "/clips/nope/like", params={"userId": "alice"}, json={"userId": "bob"}
        )
        assert response.status_code == 404


class TestConflict:
    """Tests for how exhausted retries surface."""

    def test_exhausted_retries_are_409(self, test_client, app_context):
        def always_conflicting(clip_id, owner_id):
            raise ConflictError("Gave up on record view after 3 conflicting attempts")

        app_context.engagement.record_view = always_conflicting
        clip = _register(test_client).json()["clip"]

        response = test_client.post(f"/clips/{clip['id']}/view", params={"userId": "alice"})

        assert response.status_code == 409
        assert "conflicting" in response.json()["error"]
