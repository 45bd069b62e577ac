"""
User-specific API endpoints.

Login is a read-or-create upsert keyed by the normalized handle: the
first login creates the user (201), later logins stamp lastLoginAt (200).
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..dependencies import LoginServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    username: Optional[str] = Field(None, description="Handle to log in as")


class UserResponse(BaseModel):
    """A user record."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(description="Normalized handle")
    username: str = Field(description="Same as id")
    created_at: datetime
    last_login_at: datetime


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/login",
    response_model=UserResponse,
    status_code=status.HTTP_200_OK,
    summary="Log in",
    description="Create the user on first login, otherwise update lastLoginAt",
    responses={201: {"description": "User created", "model": UserResponse}},
)
def login(
    request: LoginRequest,
    response: Response,
    login_service: LoginServiceDep,
) -> UserResponse:
    result = login_service.login(request.username)

    if result.created:
        response.status_code = status.HTTP_201_CREATED

    return UserResponse(
        id=result.user.id,
        username=result.user.username,
        created_at=result.user.created_at,
        last_login_at=result.user.last_login_at,
    )
