"""
Clip API endpoints.

The upload flow:
1. Client registers a clip → record stored as pending-upload, upload URLs returned
2. Client PUTs the video (and thumbnail) bytes directly to the object store
3. Players ask for playUrls → short-lived read URLs minted on every call

The service never proxies media bytes. Upload and playback URLs are bearer
credentials, so they appear in responses but never in logs.

Owner ids travel as the userId query parameter; there is no authentication
layer in front of these routes.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.clips.models import Clip, ClipPatch, parse_status
from ..dependencies import ClipControllerDep, EngagementDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    """Base for wire models: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ClipResponse(CamelModel):
    """A clip record as clients see it."""
    id: str = Field(description="Clip identifier")
    user_id: str = Field(description="Owner id (partition key)")
    title: str
    genre: str
    status: str = Field(description="pending-upload, uploaded, ready or failed")
    video_object_name: str = Field(description="Object-store name of the video")
    thumbnail_object_name: Optional[str] = Field(None, description="Object-store name of the thumbnail")
    views: int
    likes: list[str] = Field(description="Ids of users who liked the clip")
    created_at: datetime
    updated_at: datetime
    version: int = Field(description="Incremented on every write")

    @classmethod
    def from_clip(cls, clip: Clip) -> "ClipResponse":
        return cls(
            id=clip.id,
            user_id=clip.owner_id,
            title=clip.title,
            genre=clip.genre,
            status=clip.status.value,
            video_object_name=clip.video_object_name,
            thumbnail_object_name=clip.thumbnail_object_name,
            views=clip.views,
            likes=list(clip.likes),
            created_at=clip.created_at,
            updated_at=clip.updated_at,
            version=clip.version,
        )


class CreateClipRequest(CamelModel):
    """
    Request to register a clip.

    Fields are optional here so that a missing field surfaces as the
    controller's own validation message.
    """
    title: Optional[str] = Field(None, description="Clip title")
    genre: Optional[str] = Field(None, description="Genre, defaults to 'unknown'")
    user_id: Optional[str] = Field(None, description="Owner id")
    video_file_name: Optional[str] = Field(None, description="Client-side name of the video file")
    thumbnail_file_name: Optional[str] = Field(None, description="Client-side name of the thumbnail")


class CreateClipResponse(CamelModel):
    clip: ClipResponse
    video_upload_url: str = Field(description="Upload URL for the video bytes")
    thumbnail_upload_url: Optional[str] = Field(None, description="Upload URL for the thumbnail, if any")


class UpdateClipRequest(CamelModel):
    """The fields a client may change. Anything else is rejected."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    genre: Optional[str] = None
    status: Optional[str] = None


class PlayUrlsResponse(CamelModel):
    id: str
    user_id: str
    video_url: str
    thumbnail_url: Optional[str] = None


class DeleteClipResponse(CamelModel):
    deleted: bool
    deleted_blobs: list[str] = Field(description="Objects removed (or already absent)")
    failed_blobs: list[str] = Field(
        default_factory=list,
        description="Objects whose deletion failed; left for reconciliation"
    )


class ViewResponse(CamelModel):
    views: int


class LikeRequest(CamelModel):
    user_id: Optional[str] = Field(None, description="Id of the user liking the clip")


class LikeResponse(CamelModel):
    likes: int
    liked: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CreateClipResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a clip",
    description="Create a pending-upload clip record and return upload URLs for its bytes",
)
async def create_clip(
    request: CreateClipRequest,
    controller: ClipControllerDep,
) -> CreateClipResponse:
    created = await controller.create(
        title=request.title,
        owner_id=request.user_id,
        video_file_name=request.video_file_name,
        genre=request.genre,
        thumbnail_file_name=request.thumbnail_file_name,
    )

    return CreateClipResponse(
        clip=ClipResponse.from_clip(created.clip),
        video_upload_url=created.video_upload.url,
        thumbnail_upload_url=created.thumbnail_upload.url if created.thumbnail_upload else None,
    )


@router.get(
    "",
    response_model=list[ClipResponse],
    summary="List clips",
    description="List one owner's clips, or every clip with all=true",
)
def list_clips(
    controller: ClipControllerDep,
    user_id: Optional[str] = Query(None, alias="userId"),
    show_all: bool = Query(False, alias="all"),
) -> list[ClipResponse]:
    clips = controller.list(owner_id=user_id, include_all=show_all)
    return [ClipResponse.from_clip(clip) for clip in clips]


@router.get(
    "/{clip_id}",
    response_model=ClipResponse,
    summary="Get a clip",
)
def get_clip(
    clip_id: str,
    controller: ClipControllerDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> ClipResponse:
    return ClipResponse.from_clip(controller.read(clip_id, user_id))


@router.get(
    "/{clip_id}/playUrls",
    response_model=PlayUrlsResponse,
    summary="Get playback URLs",
    description="Mint fresh read URLs for the clip's video and thumbnail",
)
def get_play_urls(
    clip_id: str,
    controller: ClipControllerDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> PlayUrlsResponse:
    resolved = controller.get(clip_id, user_id)
    return PlayUrlsResponse(
        id=resolved.clip.id,
        user_id=resolved.clip.owner_id,
        video_url=resolved.video.url,
        thumbnail_url=resolved.thumbnail.url if resolved.thumbnail else None,
    )


@router.put(
    "/{clip_id}",
    response_model=ClipResponse,
    summary="Update a clip",
    description="Change title, genre or status",
)
def update_clip(
    clip_id: str,
    request: UpdateClipRequest,
    controller: ClipControllerDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> ClipResponse:
    patch = ClipPatch(
        title=request.title,
        genre=request.genre,
        status=parse_status(request.status) if request.status is not None else None,
    )
    return ClipResponse.from_clip(controller.update(clip_id, user_id, patch))


@router.delete(
    "/{clip_id}",
    response_model=DeleteClipResponse,
    summary="Delete a clip",
    description="Delete the clip's objects, then its record",
)
async def delete_clip(
    clip_id: str,
    controller: ClipControllerDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> DeleteClipResponse:
    result = await controller.delete(clip_id, user_id)
    return DeleteClipResponse(
        deleted=True,
        deleted_blobs=result.deleted_objects,
        failed_blobs=result.failed_objects,
    )


@router.post(
    "/{clip_id}/view",
    response_model=ViewResponse,
    summary="Record a view",
)
def record_view(
    clip_id: str,
    engagement: EngagementDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> ViewResponse:
    return ViewResponse(views=engagement.record_view(clip_id, user_id))


@router.post(
    "/{clip_id}/like",
    response_model=LikeResponse,
    summary="Toggle a like",
    description="Like the clip, or remove the like if the user already liked it",
)
def toggle_like(
    clip_id: str,
    request: LikeRequest,
    engagement: EngagementDep,
    user_id: Optional[str] = Query(None, alias="userId"),
) -> LikeResponse:
    result = engagement.toggle_like(clip_id, user_id, request.user_id)
    return LikeResponse(likes=result.likes, liked=result.liked)
